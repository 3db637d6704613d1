# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Shared plumbing for pipeline stages: engine calls and failure marking."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from voice_notes.exceptions import EngineError, InvalidTransitionError
from voice_notes.models import database as db_models
from voice_notes.models.status import VoiceNoteStatus
from voice_notes.repositories import VoiceNoteRepository
from voice_notes.services.retry import stage_retrying

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Stored error messages are truncated to keep rows small
MAX_ERROR_MESSAGE_LENGTH = 2000


class PipelineStage:
    """Base class for a stage that reads a note, calls an engine, then writes."""

    name = "pipeline"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float,
        max_attempts: int = 2,
        backoff_min: float = 1.0,
        backoff_max: float = 10.0,
    ):
        self.session_factory = session_factory
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_min = backoff_min
        self.backoff_max = backoff_max

    async def _load(self, voice_note_id: UUID) -> Optional[db_models.VoiceNote]:
        """Read the note in a short-lived session; no lock is kept."""
        async with self.session_factory() as db:
            return await VoiceNoteRepository(db).get_by_id(voice_note_id)

    async def _call_engine(self, call: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``call`` under the stage timeout and retry policy.

        Raises:
            EngineError: If every attempt failed or timed out
        """
        async for attempt in stage_retrying(
            self.name, self.max_attempts, self.backoff_min, self.backoff_max
        ):
            with attempt:
                try:
                    return await asyncio.wait_for(call(), timeout=self.timeout)
                except asyncio.TimeoutError as e:
                    raise EngineError(
                        f"{self.name} engine timed out after {self.timeout}s"
                    ) from e
        raise EngineError(f"{self.name} engine was never called")  # pragma: no cover

    async def mark_error(
        self, voice_note_id: UUID, message: str, stage: Optional[str] = None
    ) -> None:
        """Move the note to ERROR if it is still non-terminal; other fields are kept."""
        try:
            async with self.session_factory() as db:
                repo = VoiceNoteRepository(db)
                note = await repo.get_for_update(voice_note_id)
                if note is None or VoiceNoteStatus(note.status).is_terminal:
                    logger.warning(
                        f"Not marking voice note {voice_note_id} as ERROR: "
                        f"{'missing' if note is None else note.status}"
                    )
                    return
                await repo.transition(
                    note,
                    VoiceNoteStatus.ERROR,
                    error_stage=stage or self.name,
                    error_message=message[:MAX_ERROR_MESSAGE_LENGTH],
                )
                await db.commit()
            logger.info(f"Voice note {voice_note_id} marked ERROR at {self.name}")
        except InvalidTransitionError as e:
            logger.warning(f"Not marking voice note {voice_note_id} as ERROR: {e}")
        except Exception as e:
            logger.error(
                f"Failed to record {self.name} failure for voice note {voice_note_id}: {e}",
                exc_info=True,
            )
