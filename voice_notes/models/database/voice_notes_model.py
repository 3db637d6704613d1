# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""VoiceNote and ChecklistItem SQLAlchemy models."""
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from voice_notes.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VoiceNote(Base):
    """Recorded clinical audio note and its derived artifacts."""

    __tablename__ = "voice_notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    doctor_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    patient_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    audio_key: Mapped[str] = mapped_column(String(500), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), default="audio/mpeg", nullable=False)
    language: Mapped[str] = mapped_column(String(10), default="pt", nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    transcription: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Enum("PROCESSING", "TRANSCRIBED", "ANALYZED", "ERROR", name="voice_note_status"),
        default="PROCESSING",
        index=True,
        nullable=False,
    )
    error_stage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    # Relationships
    checklist_items: Mapped[list["ChecklistItem"]] = relationship(
        "ChecklistItem",
        back_populates="voice_note",
        order_by="ChecklistItem.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ChecklistItem(Base):
    """Follow-up action extracted from an analyzed voice note."""

    __tablename__ = "voice_note_checklist_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    voice_note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("voice_notes.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(
        Enum("exam", "medication", "referral", "followup", name="checklist_item_type"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        Enum("pending", "completed", name="checklist_item_status"),
        default="pending",
        nullable=False,
    )
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    # Relationships
    voice_note: Mapped["VoiceNote"] = relationship("VoiceNote", back_populates="checklist_items")
