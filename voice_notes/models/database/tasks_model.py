# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""ProcessingTask SQLAlchemy model."""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from voice_notes.database import Base
from voice_notes.models.database.voice_notes_model import utcnow


class ProcessingTask(Base):
    """Durable record of the background job driving one voice note.

    Kept apart from ``VoiceNote.status`` so a recovery sweep can find notes
    whose job was lost with a process restart.
    """

    __tablename__ = "voice_note_tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    voice_note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("voice_notes.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    job_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    stage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    worker_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    error_details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
        index=True,
    )
