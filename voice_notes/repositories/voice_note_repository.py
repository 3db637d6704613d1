# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Repository for VoiceNote and ChecklistItem operations."""
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, desc, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from voice_notes.exceptions import InvalidTransitionError
from voice_notes.models import database as db_models
from voice_notes.models.api.analysis_schema import AnalysisChecklistItem
from voice_notes.models.database.voice_notes_model import utcnow
from voice_notes.models.status import VoiceNoteStatus, can_transition


class VoiceNoteRepository:
    """Repository for VoiceNote CRUD operations and status transitions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        doctor_id: str,
        patient_id: str,
        audio_key: str,
        duration_seconds: int,
        content_type: str,
        language: str,
    ) -> db_models.VoiceNote:
        """
        Create a new voice note in PROCESSING status.

        Args:
            doctor_id: Owning doctor identity
            patient_id: Owning patient identity
            audio_key: Object-store key of the uploaded audio
            duration_seconds: Caller-supplied duration
            content_type: MIME type of the audio
            language: Transcription language code

        Returns:
            Created VoiceNote instance
        """
        note = db_models.VoiceNote(
            doctor_id=doctor_id,
            patient_id=patient_id,
            audio_key=audio_key,
            duration_seconds=duration_seconds,
            content_type=content_type,
            language=language,
            status=VoiceNoteStatus.PROCESSING.value,
        )
        self.db.add(note)
        await self.db.flush()
        return note

    async def get_by_id(self, voice_note_id: UUID) -> Optional[db_models.VoiceNote]:
        """Get voice note by ID with its checklist."""
        result = await self.db.execute(
            select(db_models.VoiceNote)
            .options(selectinload(db_models.VoiceNote.checklist_items))
            .where(db_models.VoiceNote.id == voice_note_id)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, voice_note_id: UUID) -> Optional[db_models.VoiceNote]:
        """Get voice note by ID holding a row lock until the transaction ends."""
        result = await self.db.execute(
            select(db_models.VoiceNote)
            .where(db_models.VoiceNote.id == voice_note_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_requester(
        self, voice_note_id: UUID, requester_id: str
    ) -> Optional[db_models.VoiceNote]:
        """Get voice note if the requester is its doctor or patient."""
        result = await self.db.execute(
            select(db_models.VoiceNote)
            .options(selectinload(db_models.VoiceNote.checklist_items))
            .where(
                db_models.VoiceNote.id == voice_note_id,
                or_(
                    db_models.VoiceNote.doctor_id == requester_id,
                    db_models.VoiceNote.patient_id == requester_id,
                ),
            )
        )
        return result.scalar_one_or_none()

    async def get_owned_by_doctor(
        self, voice_note_id: UUID, doctor_id: str
    ) -> Optional[db_models.VoiceNote]:
        """Get voice note only if ``doctor_id`` is its doctor."""
        result = await self.db.execute(
            select(db_models.VoiceNote).where(
                db_models.VoiceNote.id == voice_note_id,
                db_models.VoiceNote.doctor_id == doctor_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_doctor(
        self, doctor_id: str, patient_id: Optional[str] = None
    ) -> List[db_models.VoiceNote]:
        """List a doctor's voice notes, newest first, optionally for one patient."""
        query = (
            select(db_models.VoiceNote)
            .options(selectinload(db_models.VoiceNote.checklist_items))
            .where(db_models.VoiceNote.doctor_id == doctor_id)
        )
        if patient_id:
            query = query.where(db_models.VoiceNote.patient_id == patient_id)
        result = await self.db.execute(query.order_by(desc(db_models.VoiceNote.created_at)))
        return list(result.scalars().all())

    async def list_by_patient(self, patient_id: str) -> List[db_models.VoiceNote]:
        """List a patient's voice notes, newest first."""
        result = await self.db.execute(
            select(db_models.VoiceNote)
            .options(selectinload(db_models.VoiceNote.checklist_items))
            .where(db_models.VoiceNote.patient_id == patient_id)
            .order_by(desc(db_models.VoiceNote.created_at))
        )
        return list(result.scalars().all())

    async def transition(
        self,
        note: db_models.VoiceNote,
        target: VoiceNoteStatus,
        **fields,
    ) -> db_models.VoiceNote:
        """
        Move a note to ``target`` and set ``fields`` in the same statement.

        The UPDATE only matches while the row still has the status ``note``
        was read with; a writer that lost a race gets ``InvalidTransitionError``.

        Args:
            note: VoiceNote instance as read by the caller
            target: Status to move to
            **fields: Column values written together with the status

        Returns:
            Updated VoiceNote instance

        Raises:
            InvalidTransitionError: If the move is not strictly forward, or the
                row's status changed since ``note`` was read
        """
        expected = note.status
        if not can_transition(expected, target):
            raise InvalidTransitionError(expected, target.value)

        values = dict(fields, status=target.value, updated_at=utcnow())
        result = await self.db.execute(
            update(db_models.VoiceNote)
            .where(
                db_models.VoiceNote.id == note.id,
                db_models.VoiceNote.status == expected,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransitionError(f"{expected} (changed concurrently)", target.value)

        for key, value in values.items():
            set_committed_value(note, key, value)
        return note

    async def add_checklist_items(
        self, note: db_models.VoiceNote, items: Sequence[AnalysisChecklistItem]
    ) -> List[db_models.ChecklistItem]:
        """Insert a validated checklist as one batch, preserving order."""
        rows = [
            db_models.ChecklistItem(
                voice_note_id=note.id,
                position=position,
                title=item.title,
                description=item.description,
                type=item.type,
                status="pending",
                due_date=item.due_date,
            )
            for position, item in enumerate(items)
        ]
        self.db.add_all(rows)
        await self.db.flush()
        return rows

    async def delete(self, voice_note_id: UUID) -> bool:
        """Delete a voice note together with its checklist and task record."""
        await self.db.execute(
            delete(db_models.ChecklistItem).where(
                db_models.ChecklistItem.voice_note_id == voice_note_id
            )
        )
        await self.db.execute(
            delete(db_models.ProcessingTask).where(
                db_models.ProcessingTask.voice_note_id == voice_note_id
            )
        )
        result = await self.db.execute(
            delete(db_models.VoiceNote).where(db_models.VoiceNote.id == voice_note_id)
        )
        return result.rowcount > 0
