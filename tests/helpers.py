# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Test doubles and database helpers shared by the test modules."""
import asyncio
import json
from typing import Dict, List, Optional

from sqlalchemy import func, select

from voice_notes.exceptions import StorageError
from voice_notes.models import database as db_models
from voice_notes.repositories import ProcessingTaskRepository, VoiceNoteRepository

ALLOWED_TYPES = ["audio/mpeg", "audio/wav", "audio/webm", "audio/ogg", "audio/mp4"]

ONE_EXAM_ANALYSIS = json.dumps(
    {
        "summary": "Patient reports mild headache; CBC ordered.",
        "checklist": [{"title": "Order CBC", "type": "exam", "status": "pending"}],
    }
)


class FakeObjectStore:
    """Dict-backed object store with switchable failures."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.fail_put = False
        self.fail_get = False
        self.fail_remove = False
        self.removed: List[str] = []

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        if self.fail_put:
            raise StorageError(f"put failed for {key}")
        self.blobs[key] = data
        self.content_types[key] = content_type

    async def get(self, key: str) -> bytes:
        if self.fail_get or key not in self.blobs:
            raise StorageError(f"get failed for {key}")
        return self.blobs[key]

    async def remove(self, key: str) -> None:
        if self.fail_remove:
            raise StorageError(f"remove failed for {key}")
        self.blobs.pop(key, None)
        self.removed.append(key)

    async def exists(self, key: str) -> bool:
        return key in self.blobs

    def presign(self, key: str, ttl: int = 3600) -> str:
        return f"https://storage.test/{key}?ttl={ttl}"


class FakeSpeechToText:
    """Returns ``results`` in order (repeating the last); exceptions are raised."""

    def __init__(self, *results, delay: float = 0.0):
        self.results = list(results) or ["patient reports mild headache"]
        self.delay = delay
        self.calls: List[dict] = []
        self.gate: Optional[asyncio.Event] = None

    async def transcribe(self, audio: bytes, filename: str, content_type: str, language: str) -> str:
        self.calls.append(
            {"audio": audio, "filename": filename, "content_type": content_type, "language": language}
        )
        call_number = len(self.calls)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.results[min(call_number, len(self.results)) - 1]
        if isinstance(result, BaseException):
            raise result
        return result


class FakeTextGeneration:
    """Same contract as ``FakeSpeechToText`` for the analysis engine."""

    def __init__(self, *results, delay: float = 0.0):
        self.results = list(results) or [ONE_EXAM_ANALYSIS]
        self.delay = delay
        self.calls: List[dict] = []
        self.entered = asyncio.Event()
        self.gate: Optional[asyncio.Event] = None

    async def complete(self, system_prompt: str, user_content: str) -> str:
        self.calls.append({"system_prompt": system_prompt, "user_content": user_content})
        call_number = len(self.calls)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.results[min(call_number, len(self.results)) - 1]
        if isinstance(result, BaseException):
            raise result
        return result


class RecordingScheduler:
    """Scheduler that only records what it was asked to run."""

    def __init__(self, fail: bool = False):
        self.scheduled: List[tuple] = []
        self.fail = fail

    async def schedule(self, voice_note_id, job_id: str) -> None:
        if self.fail:
            raise ConnectionError("queue unavailable")
        self.scheduled.append((voice_note_id, job_id))


async def load_note(session_factory, voice_note_id) -> Optional[db_models.VoiceNote]:
    async with session_factory() as db:
        return await VoiceNoteRepository(db).get_by_id(voice_note_id)


async def load_task(session_factory, voice_note_id) -> Optional[db_models.ProcessingTask]:
    async with session_factory() as db:
        return await ProcessingTaskRepository(db).get_by_voice_note_id(voice_note_id)


async def count_items(session_factory, voice_note_id) -> int:
    async with session_factory() as db:
        result = await db.execute(
            select(func.count())
            .select_from(db_models.ChecklistItem)
            .where(db_models.ChecklistItem.voice_note_id == voice_note_id)
        )
        return result.scalar_one()


async def create_note(
    session_factory,
    store: FakeObjectStore,
    status: str = "PROCESSING",
    transcription: Optional[str] = None,
    doctor_id: str = "D1",
    patient_id: str = "P1",
    job_id: Optional[str] = None,
) -> db_models.VoiceNote:
    """Insert a note (and its task) directly, bypassing the orchestrator."""
    key = f"voice-notes/{doctor_id}/{job_id or 'seed'}-{len(store.blobs)}.mp3"
    store.blobs[key] = b"ID3 fake mp3 bytes"
    async with session_factory() as db:
        note = await VoiceNoteRepository(db).create(
            doctor_id=doctor_id,
            patient_id=patient_id,
            audio_key=key,
            duration_seconds=60,
            content_type="audio/mpeg",
            language="pt",
        )
        note.status = status
        note.transcription = transcription
        await ProcessingTaskRepository(db).create(note.id, job_id or f"job-{note.id}")
        await db.commit()
    return note


async def count_notes(session_factory) -> int:
    async with session_factory() as db:
        result = await db.execute(select(func.count()).select_from(db_models.VoiceNote))
        return result.scalar_one()


async def wait_for_calls(fake, count: int, timeout: float = 5.0) -> None:
    """Wait until a fake engine has been entered ``count`` times."""

    async def _poll():
        while len(fake.calls) < count:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)
