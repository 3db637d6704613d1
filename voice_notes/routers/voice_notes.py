# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Voice notes router: upload, list, detail and delete."""
import logging
from dataclasses import dataclass
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Request, UploadFile
from slowapi import Limiter
from slowapi.util import get_remote_address

from voice_notes.deps import Settings, get_settings
from voice_notes.exceptions import NotFoundOrForbidden, StorageError, ValidationError
from voice_notes.models.api import (
    ChecklistItemResponse,
    VoiceNoteResponse,
    VoiceNoteSubmitResponse,
)
from voice_notes.models.status import VoiceNoteStatus
from voice_notes.services.access_service import VoiceNoteAccessService
from voice_notes.services.orchestrator import VoiceNoteOrchestrator

router = APIRouter(prefix="/api/voice-notes", tags=["voice-notes"])
logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address)

ROLES = ("doctor", "patient")


@dataclass
class Requester:
    """Identity asserted by the authenticating gateway."""

    user_id: str
    role: str

    @property
    def is_doctor(self) -> bool:
        return self.role == "doctor"


def get_requester(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Requester:
    """Read the caller's identity from gateway headers."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identity")
    role = (x_user_role or "").strip().lower()
    if role not in ROLES:
        raise HTTPException(status_code=401, detail="Missing or unknown user role")
    return Requester(user_id=x_user_id.strip(), role=role)


def get_orchestrator(request: Request) -> VoiceNoteOrchestrator:
    return request.app.state.orchestrator


def get_access_service(request: Request) -> VoiceNoteAccessService:
    return request.app.state.access_service


def _to_response(note, access: VoiceNoteAccessService, with_audio_url: bool) -> VoiceNoteResponse:
    return VoiceNoteResponse(
        id=note.id,
        doctor_id=note.doctor_id,
        patient_id=note.patient_id,
        status=note.status,
        duration_seconds=note.duration_seconds,
        language=note.language,
        content_type=note.content_type,
        transcription=note.transcription,
        summary=note.summary,
        error_stage=note.error_stage,
        audio_url=access.audio_url(note) if with_audio_url else None,
        checklist=[ChecklistItemResponse.model_validate(item) for item in note.checklist_items],
        created_at=note.created_at,
        updated_at=note.updated_at,
    )


@router.post("", status_code=202, response_model=VoiceNoteSubmitResponse)
@limiter.limit(lambda: get_settings().upload_rate_limit)
async def submit_voice_note(
    request: Request,
    file: UploadFile = File(...),
    duration_seconds: int = Form(...),
    patient_id: str = Form(...),
    language: Optional[str] = Form(None),
    requester: Requester = Depends(get_requester),
    settings: Settings = Depends(get_settings),
    orchestrator: VoiceNoteOrchestrator = Depends(get_orchestrator),
):
    """
    Upload a voice note and start background processing.

    Args:
        file: Recorded audio
        duration_seconds: Recording length reported by the client
        patient_id: Patient the note is about
        language: Optional transcription language override

    Returns:
        ID of the new note, in PROCESSING status
    """
    if not requester.is_doctor:
        raise HTTPException(status_code=403, detail="Only doctors can record voice notes")

    # Read one byte past the limit so oversize uploads are caught without buffering them
    audio = await file.read(settings.max_file_size + 1)

    try:
        voice_note_id = await orchestrator.submit(
            audio=audio,
            duration_seconds=duration_seconds,
            doctor_id=requester.user_id,
            patient_id=patient_id,
            content_type=file.content_type or "audio/mpeg",
            language=language,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        logger.error(f"Audio upload failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to store audio")

    return VoiceNoteSubmitResponse(
        id=voice_note_id,
        status=VoiceNoteStatus.PROCESSING.value,
        message="Voice note received and queued for processing",
    )


@router.get("", response_model=List[VoiceNoteResponse])
async def list_voice_notes(
    patient_id: Optional[str] = None,
    requester: Requester = Depends(get_requester),
    access: VoiceNoteAccessService = Depends(get_access_service),
):
    """List voice notes for the requester, newest first."""
    notes = await access.list(requester.user_id, requester.is_doctor, patient_id=patient_id)
    return [_to_response(note, access, with_audio_url=False) for note in notes]


@router.get("/{voice_note_id}", response_model=VoiceNoteResponse)
async def get_voice_note(
    voice_note_id: str,
    requester: Requester = Depends(get_requester),
    access: VoiceNoteAccessService = Depends(get_access_service),
):
    """Get a voice note with checklist and a playback URL."""
    try:
        note = await access.get(voice_note_id, requester.user_id)
    except NotFoundOrForbidden as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _to_response(note, access, with_audio_url=True)


@router.delete("/{voice_note_id}")
async def delete_voice_note(
    voice_note_id: str,
    requester: Requester = Depends(get_requester),
    access: VoiceNoteAccessService = Depends(get_access_service),
):
    """Delete a voice note and its audio. Doctor only."""
    if not requester.is_doctor:
        raise HTTPException(status_code=404, detail=str(NotFoundOrForbidden()))
    try:
        await access.delete(voice_note_id, requester.user_id)
    except NotFoundOrForbidden as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        logger.error(f"Voice note {voice_note_id} not deleted: {e}")
        raise HTTPException(status_code=502, detail="Failed to delete audio")
    return {"success": True}
