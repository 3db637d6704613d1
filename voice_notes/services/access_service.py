# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Ownership-gated reads and deletes of voice notes."""
import logging
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from voice_notes.exceptions import NotFoundOrForbidden, StorageError
from voice_notes.models import database as db_models
from voice_notes.repositories import VoiceNoteRepository

logger = logging.getLogger(__name__)


def parse_voice_note_id(voice_note_id: Union[str, UUID]) -> UUID:
    """Parse an ID; malformed input is indistinguishable from a missing note."""
    if isinstance(voice_note_id, UUID):
        return voice_note_id
    try:
        return UUID(str(voice_note_id))
    except ValueError as e:
        raise NotFoundOrForbidden() from e


class VoiceNoteAccessService:
    """Read and delete voice notes on behalf of their doctor or patient.

    Never changes a note's status; that belongs to the pipeline stages.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage,
        audio_url_ttl: int = 3600,
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.audio_url_ttl = audio_url_ttl

    async def get(
        self, voice_note_id: Union[str, UUID], requester_id: str
    ) -> db_models.VoiceNote:
        """Get a note with its checklist if ``requester_id`` is its doctor or patient."""
        note_id = parse_voice_note_id(voice_note_id)
        async with self.session_factory() as db:
            note = await VoiceNoteRepository(db).get_for_requester(note_id, requester_id)
        if note is None:
            raise NotFoundOrForbidden()
        return note

    async def list(
        self, requester_id: str, is_doctor: bool, patient_id: Optional[str] = None
    ) -> List[db_models.VoiceNote]:
        """
        List notes visible to the requester, newest first.

        Args:
            requester_id: Authenticated identity
            is_doctor: List the doctor's notes instead of the patient's
            patient_id: Narrow a doctor's list to one patient
        """
        async with self.session_factory() as db:
            repo = VoiceNoteRepository(db)
            if is_doctor:
                return await repo.list_by_doctor(requester_id, patient_id=patient_id)
            return await repo.list_by_patient(requester_id)

    async def delete(self, voice_note_id: Union[str, UUID], requester_id: str) -> None:
        """
        Delete a note, its audio and its checklist. Doctor only.

        The blob goes first; if that fails the record is left intact.

        Raises:
            NotFoundOrForbidden: Missing note or requester is not its doctor
            StorageError: Audio could not be removed
        """
        note_id = parse_voice_note_id(voice_note_id)
        async with self.session_factory() as db:
            repo = VoiceNoteRepository(db)
            note = await repo.get_owned_by_doctor(note_id, requester_id)
            if note is None:
                raise NotFoundOrForbidden()

            try:
                await self.storage.remove(note.audio_key)
            except StorageError:
                logger.error(f"Keeping voice note {note_id}: audio {note.audio_key} not removed")
                raise

            await repo.delete(note_id)
            await db.commit()
        logger.info(f"Voice note {note_id} deleted by {requester_id}")

    def audio_url(self, note: db_models.VoiceNote) -> Optional[str]:
        """Presigned playback URL, or None if one cannot be generated."""
        try:
            return self.storage.presign(note.audio_key, self.audio_url_ttl)
        except StorageError as e:
            logger.warning(f"No audio URL for voice note {note.id}: {e}")
            return None
