# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures: SQLite database, in-memory object store and fake engines."""
import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from tests.helpers import (
    ALLOWED_TYPES,
    FakeObjectStore,
    FakeSpeechToText,
    FakeTextGeneration,
    RecordingScheduler,
)
from voice_notes.database import create_session_factory, create_tables
from voice_notes.services.analysis_service import AnalysisStage
from voice_notes.services.orchestrator import VoiceNoteOrchestrator
from voice_notes.services.scheduler import InProcessScheduler
from voice_notes.services.transcription_service import TranscriptionStage
from voice_notes.workers.runner import PipelineRunner


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'voice_notes.db'}")
    await create_tables(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def stt() -> FakeSpeechToText:
    return FakeSpeechToText()


@pytest.fixture
def llm() -> FakeTextGeneration:
    return FakeTextGeneration()


@pytest.fixture
def transcription_stage(session_factory, store, stt) -> TranscriptionStage:
    return TranscriptionStage(
        session_factory, store, stt, timeout=1.0, max_attempts=1, backoff_min=0, backoff_max=0
    )


@pytest.fixture
def analysis_stage(session_factory, llm) -> AnalysisStage:
    return AnalysisStage(session_factory, llm, timeout=1.0, max_attempts=1, backoff_min=0, backoff_max=0)


@pytest.fixture
def runner(session_factory, transcription_stage, analysis_stage) -> PipelineRunner:
    return PipelineRunner(session_factory, transcription_stage, analysis_stage, worker_id="test-worker")


@pytest.fixture
def scheduler(runner) -> InProcessScheduler:
    return InProcessScheduler(runner)


@pytest.fixture
def recording_scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def orchestrator(session_factory, store, scheduler) -> VoiceNoteOrchestrator:
    return VoiceNoteOrchestrator(
        session_factory,
        store,
        scheduler,
        max_file_size=1024,
        allowed_audio_types=ALLOWED_TYPES,
        default_language="pt",
    )


@pytest.fixture
def idle_orchestrator(session_factory, store, recording_scheduler) -> VoiceNoteOrchestrator:
    """Orchestrator whose jobs never run unless a test runs them."""
    return VoiceNoteOrchestrator(
        session_factory,
        store,
        recording_scheduler,
        max_file_size=1024,
        allowed_audio_types=ALLOWED_TYPES,
        default_language="pt",
    )
