# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Background job schedulers: in-process asyncio tasks or an ARQ queue."""
import asyncio
import logging
from typing import Protocol, Set
from uuid import UUID

from arq.connections import ArqRedis

logger = logging.getLogger(__name__)

PIPELINE_JOB_NAME = "process_voice_note_job"


class PipelineScheduler(Protocol):
    async def schedule(self, voice_note_id: UUID, job_id: str) -> None: ...


class InProcessScheduler:
    """Runs each pipeline job as an asyncio task in the current event loop.

    Jobs die with the process; the recovery sweep picks them up on restart.
    """

    def __init__(self, runner):
        self.runner = runner
        self._tasks: Set[asyncio.Task] = set()

    async def schedule(self, voice_note_id: UUID, job_id: str) -> None:
        task = asyncio.create_task(
            self.runner.run(voice_note_id, job_id), name=f"voice-note-{voice_note_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Scheduled in-process job {job_id} for voice note {voice_note_id}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for running jobs; cancel whatever is left after ``timeout``."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        logger.info(f"Waiting for {len(tasks)} in-process pipeline job(s)")
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(f"Cancelled {len(still_running)} unfinished pipeline job(s)")
            await asyncio.gather(*still_running, return_exceptions=True)


class ArqScheduler:
    """Enqueues pipeline jobs on Redis for the ARQ worker."""

    def __init__(self, pool: ArqRedis):
        self.pool = pool

    async def schedule(self, voice_note_id: UUID, job_id: str) -> None:
        job = await self.pool.enqueue_job(
            PIPELINE_JOB_NAME,
            voice_note_id=str(voice_note_id),
            job_id=job_id,
        )
        logger.info(
            f"Enqueued job {job_id} for voice note {voice_note_id} "
            f"(arq id {job.job_id if job else 'duplicate'})"
        )
