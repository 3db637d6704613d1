# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Pipeline runner shared by the API process and the ARQ worker."""
import logging
import socket
from datetime import timedelta
from typing import Dict, List, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from voice_notes.deps import Settings
from voice_notes.exceptions import InvalidTransitionError
from voice_notes.models.database.voice_notes_model import utcnow
from voice_notes.models.status import VoiceNoteStatus
from voice_notes.repositories import ProcessingTaskRepository, VoiceNoteRepository
from voice_notes.services.analysis_service import AnalysisStage, OpenAITextGenerationEngine
from voice_notes.services.scheduler import PipelineScheduler
from voice_notes.services.transcription_service import (
    OpenAISpeechToTextEngine,
    TranscriptionStage,
)

from .job_context import PipelineJobContext
from .job_processor import VoiceNoteJobProcessor

logger = logging.getLogger(__name__)


class PipelineRunner:
    """Builds job contexts, runs jobs and sweeps for stalled ones."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        transcription_stage: TranscriptionStage,
        analysis_stage: AnalysisStage,
        worker_id: str | None = None,
        claim_lease_seconds: int = 900,
    ):
        self.session_factory = session_factory
        self.transcription_stage = transcription_stage
        self.analysis_stage = analysis_stage
        self.worker_id = worker_id or socket.gethostname()
        self.claim_lease_seconds = claim_lease_seconds

    async def run(self, voice_note_id: UUID, job_id: str) -> dict:
        """Process one job. Never raises for pipeline failures."""
        ctx = PipelineJobContext(
            job_id=job_id,
            voice_note_id=voice_note_id,
            worker_id=self.worker_id,
            session_factory=self.session_factory,
            transcription_stage=self.transcription_stage,
            analysis_stage=self.analysis_stage,
            claim_lease_seconds=self.claim_lease_seconds,
        )
        return await VoiceNoteJobProcessor(ctx).process()

    async def recover_stalled(
        self,
        scheduler: PipelineScheduler,
        stall_seconds: int,
        max_attempts: int,
    ) -> Dict[str, int]:
        """
        Resume or fail out notes whose job stopped making progress.

        A task is stalled when it never completed and was last touched more
        than ``stall_seconds`` ago, e.g. because the process running it died.

        Args:
            scheduler: Where resumed jobs are handed
            stall_seconds: Idle time after which a task counts as stalled
            max_attempts: Runs allowed before the note is failed out

        Returns:
            Counts of ``resumed``, ``failed`` and ``closed`` tasks
        """
        cutoff = utcnow() - timedelta(seconds=stall_seconds)
        counts = {"resumed": 0, "failed": 0, "closed": 0}
        to_resume: List[Tuple[UUID, str]] = []

        async with self.session_factory() as db:
            task_repo = ProcessingTaskRepository(db)
            note_repo = VoiceNoteRepository(db)
            for task in await task_repo.list_stalled(cutoff):
                note = await note_repo.get_for_update(task.voice_note_id)
                if note is None or VoiceNoteStatus(note.status).is_terminal:
                    await task_repo.mark_completed(task.job_id)
                    counts["closed"] += 1
                elif task.attempts >= max_attempts:
                    message = f"Abandoned after {task.attempts} stalled attempt(s) at {note.status}"
                    try:
                        await note_repo.transition(
                            note,
                            VoiceNoteStatus.ERROR,
                            error_stage="recovery",
                            error_message=message,
                        )
                    except InvalidTransitionError as e:
                        logger.warning(f"[{self.worker_id}] Voice note {note.id} moved during sweep: {e}")
                        continue
                    await task_repo.mark_failed(
                        task.job_id,
                        {"error": message, "stage": "recovery", "worker_id": self.worker_id},
                    )
                    counts["failed"] += 1
                    logger.warning(f"[{self.worker_id}] Voice note {note.id}: {message}")
                else:
                    # Touch so the next sweep does not resume it twice
                    await task_repo.touch(task.job_id)
                    to_resume.append((note.id, task.job_id))
            await db.commit()

        for voice_note_id, job_id in to_resume:
            try:
                await scheduler.schedule(voice_note_id, job_id)
                counts["resumed"] += 1
            except Exception as e:
                logger.error(
                    f"[{self.worker_id}] Could not resume voice note {voice_note_id}: {e}",
                    exc_info=True,
                )

        if any(counts.values()):
            logger.info(
                f"[{self.worker_id}] Recovery sweep: {counts['resumed']} resumed, "
                f"{counts['failed']} failed, {counts['closed']} closed"
            )
        return counts


def build_pipeline_runner(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    storage,
) -> PipelineRunner:
    """Wire the OpenAI engines and both stages from settings."""
    backoff = {"backoff_min": settings.retry_backoff_min, "backoff_max": settings.retry_backoff_max}
    transcription_stage = TranscriptionStage(
        session_factory,
        storage,
        OpenAISpeechToTextEngine(
            api_key=settings.openai_api_key,
            model=settings.stt_model,
            base_url=settings.openai_base_url,
            timeout=settings.stt_timeout,
        ),
        timeout=settings.stt_timeout,
        max_attempts=settings.transcription_max_attempts,
        **backoff,
    )
    analysis_stage = AnalysisStage(
        session_factory,
        OpenAITextGenerationEngine(
            api_key=settings.openai_api_key,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            base_url=settings.openai_base_url,
            timeout=settings.llm_timeout,
        ),
        timeout=settings.llm_timeout,
        max_attempts=settings.analysis_max_attempts,
        **backoff,
    )
    return PipelineRunner(
        session_factory,
        transcription_stage,
        analysis_stage,
        claim_lease_seconds=settings.recovery_stall_seconds,
    )
