# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Transcription stage: stored audio to transcript text."""
import logging
from typing import Optional, Protocol
from uuid import UUID

from openai import APIError, AsyncOpenAI

from voice_notes.exceptions import (
    EngineError,
    InvalidTransitionError,
    StaleRunError,
    StorageError,
    TranscriptionError,
)
from voice_notes.models.status import VoiceNoteStatus
from voice_notes.repositories import VoiceNoteRepository
from voice_notes.services.stage_base import PipelineStage
from voice_notes.services.storage import audio_extension, base_content_type

logger = logging.getLogger(__name__)


class SpeechToTextEngine(Protocol):
    async def transcribe(
        self, audio: bytes, filename: str, content_type: str, language: str
    ) -> str: ...


class OpenAISpeechToTextEngine:
    """Speech-to-text through the OpenAI audio transcription endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "whisper-1",
        base_url: Optional[str] = None,
        timeout: float = 120.0,
    ):
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
        self.model = model

    async def transcribe(
        self, audio: bytes, filename: str, content_type: str, language: str
    ) -> str:
        try:
            result = await self.client.audio.transcriptions.create(
                model=self.model,
                file=(filename, audio, content_type),
                language=language,
                response_format="text",
            )
        except APIError as e:
            raise EngineError(f"Speech-to-text request failed: {e}") from e

        # The SDK returns a bare string for the text response format
        if isinstance(result, str):
            return result
        text = getattr(result, "text", None)
        if not isinstance(text, str):
            raise EngineError(f"Speech-to-text returned {type(result).__name__}, expected text")
        return text


class TranscriptionStage(PipelineStage):
    """Turns a PROCESSING note's audio into a persisted transcript."""

    name = "transcription"

    def __init__(self, session_factory, storage, engine: SpeechToTextEngine, **kwargs):
        super().__init__(session_factory, **kwargs)
        self.storage = storage
        self.engine = engine

    async def transcribe(self, voice_note_id: UUID) -> str:
        """
        Transcribe a note and move it to TRANSCRIBED.

        Args:
            voice_note_id: Note to transcribe; must be PROCESSING

        Returns:
            The stored transcript text

        Raises:
            TranscriptionError: On any failure. Failures after the precondition
                check also move the note to ERROR.
            StaleRunError: If another run stored a transcript first; the note
                is left as that run wrote it.
        """
        note = await self._load(voice_note_id)
        if note is None:
            raise TranscriptionError("Voice note not found", voice_note_id)
        if note.status != VoiceNoteStatus.PROCESSING.value:
            raise TranscriptionError(
                f"Voice note is {note.status}, expected {VoiceNoteStatus.PROCESSING.value}",
                voice_note_id,
            )

        try:
            text = await self._transcribe_audio(note)
            await self._store_transcript(voice_note_id, text)
        except TranscriptionError as e:
            logger.warning(f"Transcription failed for voice note {voice_note_id}: {e}")
            await self.mark_error(voice_note_id, str(e))
            raise

        logger.info(f"Voice note {voice_note_id} transcribed ({len(text)} chars)")
        return text

    async def _transcribe_audio(self, note) -> str:
        try:
            audio = await self.storage.get(note.audio_key)
        except StorageError as e:
            raise TranscriptionError(f"Audio could not be retrieved: {e}", note.id) from e

        filename = f"audio.{audio_extension(note.content_type)}"
        content_type = base_content_type(note.content_type)
        try:
            text = await self._call_engine(
                lambda: self.engine.transcribe(audio, filename, content_type, note.language)
            )
        except EngineError as e:
            raise TranscriptionError(str(e), note.id) from e

        if not isinstance(text, str) or not text.strip():
            raise TranscriptionError("Speech-to-text returned an empty transcript", note.id)
        return text.strip()

    async def _store_transcript(self, voice_note_id: UUID, text: str) -> None:
        async with self.session_factory() as db:
            repo = VoiceNoteRepository(db)
            note = await repo.get_for_update(voice_note_id)
            if note is None:
                raise TranscriptionError("Voice note disappeared during transcription", voice_note_id)
            try:
                await repo.transition(note, VoiceNoteStatus.TRANSCRIBED, transcription=text)
            except InvalidTransitionError as e:
                raise StaleRunError(
                    f"Transcript discarded, note already moved on: {e}", voice_note_id, self.name
                ) from e
            await db.commit()
