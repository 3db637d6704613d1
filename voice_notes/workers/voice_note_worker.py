# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""ARQ worker for processing voice-note pipeline jobs.

Run with ``arq voice_notes.workers.voice_note_worker.WorkerSettings``.
"""
import logging
from uuid import UUID

from arq import cron
from arq.connections import RedisSettings

from voice_notes.database import create_engine, create_session_factory
from voice_notes.deps import configure_logging, get_settings
from voice_notes.services.scheduler import ArqScheduler
from voice_notes.services.storage import get_storage_manager

from .runner import build_pipeline_runner

logger = logging.getLogger(__name__)

# Global settings
settings = get_settings()


async def process_voice_note_job(ctx: dict, voice_note_id: str, job_id: str) -> dict:
    """
    Process a voice note from its current status to ANALYZED or ERROR.

    Args:
        ctx: ARQ context dictionary
        voice_note_id: Voice note database ID
        job_id: Processing task job identifier

    Returns:
        Dictionary with result information
    """
    runner = ctx["runner"]
    logger.info(f"[{runner.worker_id}] Received job {job_id} for voice note {voice_note_id}")
    return await runner.run(UUID(voice_note_id), job_id)


async def recover_stalled_notes(ctx: dict) -> dict:
    """Periodic sweep resuming notes whose job was lost."""
    return await ctx["runner"].recover_stalled(
        ArqScheduler(ctx["redis"]),
        stall_seconds=settings.recovery_stall_seconds,
        max_attempts=settings.recovery_max_attempts,
    )


async def startup(ctx: dict):
    """ARQ worker startup hook."""
    configure_logging(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    storage = get_storage_manager(settings)
    ctx["engine"] = engine
    ctx["runner"] = build_pipeline_runner(settings, session_factory, storage)
    logger.info(f"Worker {ctx['runner'].worker_id} starting up")


async def shutdown(ctx: dict):
    """ARQ worker shutdown hook."""
    logger.info("Worker shutting down")
    engine = ctx.get("engine")
    if engine is not None:
        await engine.dispose()


def _recovery_minutes() -> set:
    interval = max(1, min(settings.recovery_interval_minutes, 60))
    return set(range(0, 60, interval))


class WorkerSettings:
    """ARQ worker settings."""

    redis_settings = RedisSettings.from_dsn(settings.redis_url)

    functions = [process_voice_note_job]
    cron_jobs = [
        cron(recover_stalled_notes, minute=_recovery_minutes(), run_at_startup=True),
    ]

    on_startup = startup
    on_shutdown = shutdown

    # Job settings
    max_jobs = 10  # Maximum concurrent jobs per worker
    job_timeout = 1800  # Two engine stages with retries fit well inside this
    keep_result = 3600  # Keep result in Redis for 1 hour

    # Stage failures are terminal; lost jobs come back through the recovery sweep
    max_tries = 1
