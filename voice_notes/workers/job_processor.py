# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Pipeline job processor: drives one voice note through its stages."""

import logging
import traceback
from datetime import timedelta
from typing import Optional

from voice_notes.exceptions import StageError, StaleRunError
from voice_notes.models.database.voice_notes_model import utcnow
from voice_notes.models.status import VoiceNoteStatus
from voice_notes.repositories import ProcessingTaskRepository, VoiceNoteRepository

from .job_context import PipelineJobContext

logger = logging.getLogger(__name__)


class VoiceNoteJobProcessor:
    """Runs transcription then analysis for one note and records the outcome.

    The note's current status decides where the job starts, so a job resumed
    by the recovery sweep continues from the last completed stage. Stage
    failures end the job; they are logged and recorded on the task, never
    re-raised.
    """

    def __init__(self, ctx: PipelineJobContext):
        self.ctx = ctx
        self.current_stage: Optional[str] = None

    async def process(self) -> dict:
        """Main processing pipeline.

        1. Claim the task (skip if another live run holds it)
        2. Transcribe if the note is PROCESSING
        3. Analyze if the note is (now) TRANSCRIBED
        4. Mark job as completed

        Returns:
            Dictionary with result information
        """
        try:
            if not await self._claim_job():
                return self._skipped_job()

            status = await self._current_status()
            if status is None:
                logger.warning(
                    f"[{self.ctx.worker_id}] Voice note {self.ctx.voice_note_id} no longer exists"
                )
                return await self._complete_job("missing")

            if status == VoiceNoteStatus.PROCESSING:
                await self._run_transcription()
                status = VoiceNoteStatus.TRANSCRIBED

            if status == VoiceNoteStatus.TRANSCRIBED:
                await self._run_analysis()
                status = VoiceNoteStatus.ANALYZED
            else:
                logger.info(
                    f"[{self.ctx.worker_id}] Voice note {self.ctx.voice_note_id} "
                    f"already {status.value}, nothing to do"
                )

            return await self._complete_job(status.value)

        except StaleRunError as e:
            return self._superseded_job(e)
        except Exception as e:
            return await self._handle_failure(e)

    async def _claim_job(self) -> bool:
        logger.info(
            f"[{self.ctx.worker_id}] Starting job {self.ctx.job_id} "
            f"for voice note {self.ctx.voice_note_id}"
        )
        lease_cutoff = utcnow() - timedelta(seconds=self.ctx.claim_lease_seconds)
        async with self.ctx.session_factory() as db:
            repo = ProcessingTaskRepository(db)
            claimed = await repo.claim(self.ctx.job_id, self.ctx.worker_id, lease_cutoff)
            # Task rows go with their note; the status lookup reports it missing
            if not claimed and await repo.get_by_job_id(self.ctx.job_id) is None:
                claimed = True
            await db.commit()
        return claimed

    def _skipped_job(self) -> dict:
        logger.info(
            f"[{self.ctx.worker_id}] Job {self.ctx.job_id} is completed or held by "
            f"another run, skipping"
        )
        return {
            "status": "skipped",
            "job_id": self.ctx.job_id,
            "voice_note_id": str(self.ctx.voice_note_id),
        }

    def _superseded_job(self, error: StaleRunError) -> dict:
        """Another run moved the note on; its own job records the outcome."""
        logger.warning(f"[{self.ctx.worker_id}] Job {self.ctx.job_id} superseded: {error}")
        return {
            "status": "superseded",
            "job_id": self.ctx.job_id,
            "voice_note_id": str(self.ctx.voice_note_id),
            "stage": error.stage,
        }

    async def _current_status(self) -> Optional[VoiceNoteStatus]:
        async with self.ctx.session_factory() as db:
            note = await VoiceNoteRepository(db).get_by_id(self.ctx.voice_note_id)
        return VoiceNoteStatus(note.status) if note else None

    async def _enter_stage(self, stage: str):
        self.current_stage = stage
        async with self.ctx.session_factory() as db:
            await ProcessingTaskRepository(db).mark_stage(self.ctx.job_id, stage)
            await db.commit()

    async def _run_transcription(self):
        await self._enter_stage(self.ctx.transcription_stage.name)
        text = await self.ctx.transcription_stage.transcribe(self.ctx.voice_note_id)
        logger.info(f"[{self.ctx.worker_id}] Transcription done: {len(text)} chars")

    async def _run_analysis(self):
        await self._enter_stage(self.ctx.analysis_stage.name)
        payload = await self.ctx.analysis_stage.analyze(self.ctx.voice_note_id)
        logger.info(
            f"[{self.ctx.worker_id}] Analysis done: {len(payload.checklist)} checklist item(s)"
        )

    async def _complete_job(self, final_status: str) -> dict:
        async with self.ctx.session_factory() as db:
            await ProcessingTaskRepository(db).mark_completed(self.ctx.job_id)
            await db.commit()

        logger.info(
            f"[{self.ctx.worker_id}] Job {self.ctx.job_id} completed, "
            f"voice note {self.ctx.voice_note_id} is {final_status}"
        )
        return {
            "status": "completed",
            "job_id": self.ctx.job_id,
            "voice_note_id": str(self.ctx.voice_note_id),
            "voice_note_status": final_status,
        }

    async def _handle_failure(self, error: Exception) -> dict:
        """Record a failed job.

        Stage errors already moved the note to ERROR. Anything else is
        unexpected, so the note is reconciled to ERROR here. The task keeps
        the error details and traceback for debugging.
        """
        error_message = str(error)
        stage = getattr(error, "stage", None) or self.current_stage or "pipeline"

        if isinstance(error, StageError):
            logger.error(
                f"[{self.ctx.worker_id}] Job {self.ctx.job_id} failed at {stage} "
                f"for voice note {self.ctx.voice_note_id}: {error_message}"
            )
        else:
            logger.error(
                f"[{self.ctx.worker_id}] Job {self.ctx.job_id} crashed at {stage} "
                f"for voice note {self.ctx.voice_note_id}: {error_message}",
                exc_info=True,
            )
            await self.ctx.transcription_stage.mark_error(
                self.ctx.voice_note_id, f"Unexpected error: {error_message}", stage=stage
            )

        error_details = {
            "error": error_message,
            "error_type": type(error).__name__,
            "stage": stage,
            "traceback": traceback.format_exc(),
            "worker_id": self.ctx.worker_id,
        }
        try:
            async with self.ctx.session_factory() as db:
                await ProcessingTaskRepository(db).mark_failed(self.ctx.job_id, error_details)
                await db.commit()
        except Exception as cleanup_error:
            logger.error(
                f"[{self.ctx.worker_id}] Error during failure cleanup: {cleanup_error}",
                exc_info=True,
            )

        return {
            "status": "failed",
            "job_id": self.ctx.job_id,
            "voice_note_id": str(self.ctx.voice_note_id),
            "stage": stage,
            "error": error_message,
        }
