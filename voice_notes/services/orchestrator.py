# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Voice-note ingress: validate, store audio, persist, schedule processing."""
import logging
import uuid
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from voice_notes.exceptions import StorageError, ValidationError
from voice_notes.repositories import ProcessingTaskRepository, VoiceNoteRepository
from voice_notes.services.scheduler import PipelineScheduler
from voice_notes.services.storage import base_content_type, build_audio_key

logger = logging.getLogger(__name__)

MAX_IDENTITY_LENGTH = 255
MAX_LANGUAGE_LENGTH = 10


class VoiceNoteOrchestrator:
    """Entry point for new voice notes.

    ``submit`` returns as soon as the note is durable; transcription and
    analysis happen in the background job handed to ``scheduler``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage,
        scheduler: PipelineScheduler,
        max_file_size: int = 25 * 1024 * 1024,
        allowed_audio_types: Iterable[str] = ("audio/mpeg",),
        default_language: str = "pt",
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.scheduler = scheduler
        self.max_file_size = max_file_size
        self.allowed_audio_types = {base_content_type(t) for t in allowed_audio_types}
        self.default_language = default_language

    def validate(
        self,
        audio: bytes,
        duration_seconds: int,
        doctor_id: str,
        patient_id: str,
        content_type: str,
        language: Optional[str],
    ) -> None:
        """Raise ``ValidationError`` for unusable input; nothing is touched."""
        if not isinstance(audio, (bytes, bytearray)) or len(audio) == 0:
            raise ValidationError("Audio must be non-empty")
        if len(audio) > self.max_file_size:
            raise ValidationError(
                f"Audio is {len(audio)} bytes, maximum is {self.max_file_size} bytes"
            )
        if not content_type or base_content_type(content_type) not in self.allowed_audio_types:
            raise ValidationError(f"Unsupported audio type: {content_type!r}")
        if (
            isinstance(duration_seconds, bool)
            or not isinstance(duration_seconds, int)
            or duration_seconds <= 0
        ):
            raise ValidationError("Duration must be a positive integer number of seconds")
        for label, identity in (("doctor", doctor_id), ("patient", patient_id)):
            if not isinstance(identity, str) or not identity.strip():
                raise ValidationError(f"A {label} identity is required")
            if len(identity) > MAX_IDENTITY_LENGTH or "/" in identity:
                raise ValidationError(f"Invalid {label} identity")
        if language is not None and (
            not language.strip() or len(language) > MAX_LANGUAGE_LENGTH
        ):
            raise ValidationError(f"Invalid language code: {language!r}")

    async def submit(
        self,
        audio: bytes,
        duration_seconds: int,
        doctor_id: str,
        patient_id: str,
        content_type: str = "audio/mpeg",
        language: Optional[str] = None,
    ) -> UUID:
        """
        Accept a new voice note.

        Args:
            audio: Raw audio bytes
            duration_seconds: Positive duration reported by the caller
            doctor_id: Authenticated doctor submitting the note
            patient_id: Patient the note is about
            content_type: MIME type of ``audio``
            language: Transcription language; defaults to the configured one

        Returns:
            ID of the new note, in PROCESSING status

        Raises:
            ValidationError: Input rejected, nothing stored
            StorageError: Audio upload failed, nothing persisted
        """
        self.validate(audio, duration_seconds, doctor_id, patient_id, content_type, language)
        content_type = base_content_type(content_type)
        language = (language or self.default_language).strip()

        audio_key = build_audio_key(doctor_id, content_type)
        await self.storage.put(audio_key, bytes(audio), content_type)

        job_id = str(uuid.uuid4())
        try:
            async with self.session_factory() as db:
                note = await VoiceNoteRepository(db).create(
                    doctor_id=doctor_id,
                    patient_id=patient_id,
                    audio_key=audio_key,
                    duration_seconds=duration_seconds,
                    content_type=content_type,
                    language=language,
                )
                await ProcessingTaskRepository(db).create(note.id, job_id)
                await db.commit()
                voice_note_id = note.id
        except Exception as e:
            logger.error(f"Failed to persist voice note for {audio_key}: {e}", exc_info=True)
            try:
                await self.storage.remove(audio_key)
            except StorageError as cleanup_error:
                logger.error(f"Orphaned audio blob {audio_key}: {cleanup_error}")
            raise

        logger.info(
            f"Voice note {voice_note_id} created for doctor {doctor_id}, "
            f"patient {patient_id} ({len(audio)} bytes, {duration_seconds}s)"
        )

        try:
            await self.scheduler.schedule(voice_note_id, job_id)
        except Exception as e:
            # The task stays incomplete, so the recovery sweep resumes it later
            logger.error(
                f"Failed to schedule job {job_id} for voice note {voice_note_id}: {e}",
                exc_info=True,
            )

        return voice_note_id
