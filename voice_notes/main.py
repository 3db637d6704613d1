# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""FastAPI main application module."""
import logging
from contextlib import asynccontextmanager

from arq import create_pool
from arq.connections import RedisSettings
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from voice_notes.database import close_db, get_session_factory, init_db
from voice_notes.deps import configure_logging, get_settings
from voice_notes.routers import health
from voice_notes.routers import voice_notes as voice_notes_router
from voice_notes.services.access_service import VoiceNoteAccessService
from voice_notes.services.orchestrator import VoiceNoteOrchestrator
from voice_notes.services.scheduler import ArqScheduler, InProcessScheduler
from voice_notes.services.storage import get_storage_manager
from voice_notes.workers.runner import build_pipeline_runner

logger = logging.getLogger(__name__)

# Seconds in-process jobs get to finish on shutdown
SHUTDOWN_DRAIN_TIMEOUT = 30.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    settings = get_settings()
    configure_logging(settings)

    # Startup
    await init_db()
    session_factory = get_session_factory()
    storage = get_storage_manager(settings)
    runner = build_pipeline_runner(settings, session_factory, storage)

    arq_pool = None
    if settings.pipeline_backend == "arq":
        arq_pool = await create_pool(RedisSettings.from_dsn(settings.redis_url))
        scheduler = ArqScheduler(arq_pool)
    else:
        scheduler = InProcessScheduler(runner)

    app.state.storage_manager = storage
    app.state.scheduler = scheduler
    app.state.orchestrator = VoiceNoteOrchestrator(
        session_factory,
        storage,
        scheduler,
        max_file_size=settings.max_file_size,
        allowed_audio_types=settings.allowed_audio_types,
        default_language=settings.transcription_language,
    )
    app.state.access_service = VoiceNoteAccessService(
        session_factory, storage, audio_url_ttl=settings.audio_url_ttl
    )

    # The ARQ worker owns the sweep when jobs run there
    if isinstance(scheduler, InProcessScheduler):
        try:
            await runner.recover_stalled(
                scheduler,
                stall_seconds=settings.recovery_stall_seconds,
                max_attempts=settings.recovery_max_attempts,
            )
        except Exception as e:
            logger.error(f"Startup recovery sweep failed: {e}", exc_info=True)

    logger.info(
        f"Voice notes API ready (storage={settings.storage_backend}, "
        f"pipeline={settings.pipeline_backend})"
    )
    yield

    # Shutdown
    if isinstance(scheduler, InProcessScheduler):
        await scheduler.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)
    if arq_pool is not None:
        await arq_pool.close()
    await close_db()


settings = get_settings()

app = FastAPI(
    title=settings.api_title,
    description="Clinical voice notes: transcription, summary and follow-up checklist",
    version=settings.api_version,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Rate limiter
app.state.limiter = voice_notes_router.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(voice_notes_router.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Voice Notes API",
        "version": settings.api_version,
        "docs": "/api/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("voice_notes.main:app", host="0.0.0.0", port=8000, reload=True)
