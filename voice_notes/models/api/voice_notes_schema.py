# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Pydantic schemas for the voice notes API."""
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ChecklistItemResponse(BaseModel):
    """Checklist item attached to an analyzed voice note."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: Optional[str] = None
    type: str = Field(..., description="exam, medication, referral or followup")
    status: str = Field(..., description="pending or completed")
    due_date: Optional[date] = None


class VoiceNoteResponse(BaseModel):
    """Voice note with its derived artifacts."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    doctor_id: str
    patient_id: str
    status: str
    duration_seconds: int
    language: str
    content_type: str
    transcription: Optional[str] = None
    summary: Optional[str] = None
    error_stage: Optional[str] = None
    audio_url: Optional[str] = Field(None, description="Presigned URL for playback")
    checklist: List[ChecklistItemResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class VoiceNoteSubmitResponse(BaseModel):
    """Acknowledgement returned once the note is persisted and queued."""

    id: UUID
    status: str
    message: str
