# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Context dataclass for voice-note pipeline jobs."""
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from voice_notes.services.analysis_service import AnalysisStage
from voice_notes.services.transcription_service import TranscriptionStage


@dataclass
class PipelineJobContext:
    """Everything one pipeline job needs, injected by the runner."""

    # Job identifiers
    job_id: str
    voice_note_id: UUID
    worker_id: str

    # Database
    session_factory: async_sessionmaker[AsyncSession]

    # Stages
    transcription_stage: TranscriptionStage
    analysis_stage: AnalysisStage

    # A started run younger than this keeps the job to itself
    claim_lease_seconds: int = 900
