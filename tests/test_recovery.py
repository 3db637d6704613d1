# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

from datetime import timedelta

from voice_notes.models.database.voice_notes_model import utcnow
from voice_notes.repositories import ProcessingTaskRepository

from tests.helpers import RecordingScheduler, create_note, load_note, load_task


async def _stall(session_factory, voice_note_id, attempts: int = 0, minutes: int = 30) -> None:
    async with session_factory() as db:
        task = await ProcessingTaskRepository(db).get_by_voice_note_id(voice_note_id)
        task.attempts = attempts
        task.updated_at = utcnow() - timedelta(minutes=minutes)
        if attempts:
            task.started_at = task.updated_at
        await db.commit()


async def test_resumes_stalled_processing_note(session_factory, store, runner, scheduler) -> None:
    note = await create_note(session_factory, store)
    await _stall(session_factory, note.id, attempts=1)

    counts = await runner.recover_stalled(scheduler, stall_seconds=600, max_attempts=3)
    await scheduler.drain(timeout=5)

    assert counts == {"resumed": 1, "failed": 0, "closed": 0}
    assert (await load_note(session_factory, note.id)).status == "ANALYZED"
    task = await load_task(session_factory, note.id)
    assert task.attempts == 2
    assert task.completed_at is not None


async def test_resumes_transcribed_note_at_analysis(session_factory, store, stt, llm, runner, scheduler) -> None:
    note = await create_note(session_factory, store, status="TRANSCRIBED", transcription="headache")
    await _stall(session_factory, note.id, attempts=1)

    await runner.recover_stalled(scheduler, stall_seconds=600, max_attempts=3)
    await scheduler.drain(timeout=5)

    stored = await load_note(session_factory, note.id)
    assert stored.status == "ANALYZED"
    assert stored.transcription == "headache"
    assert stt.calls == []
    assert len(llm.calls) == 1


async def test_fails_out_after_max_attempts(session_factory, store, runner) -> None:
    note = await create_note(session_factory, store, status="TRANSCRIBED", transcription="headache")
    await _stall(session_factory, note.id, attempts=3)
    scheduler = RecordingScheduler()

    counts = await runner.recover_stalled(scheduler, stall_seconds=600, max_attempts=3)

    assert counts == {"resumed": 0, "failed": 1, "closed": 0}
    assert scheduler.scheduled == []
    stored = await load_note(session_factory, note.id)
    assert stored.status == "ERROR"
    assert stored.error_stage == "recovery"
    assert stored.transcription == "headache"
    task = await load_task(session_factory, note.id)
    assert task.completed_at is not None
    assert task.error_details["stage"] == "recovery"


async def test_closes_tasks_of_terminal_notes(session_factory, store, runner) -> None:
    note = await create_note(session_factory, store, status="ANALYZED", transcription="t")
    await _stall(session_factory, note.id, attempts=1)
    scheduler = RecordingScheduler()

    counts = await runner.recover_stalled(scheduler, stall_seconds=600, max_attempts=3)

    assert counts == {"resumed": 0, "failed": 0, "closed": 1}
    assert scheduler.scheduled == []
    assert (await load_task(session_factory, note.id)).completed_at is not None


async def test_ignores_recent_and_completed_tasks(session_factory, store, runner) -> None:
    await create_note(session_factory, store)
    finished = await create_note(session_factory, store)
    await _stall(session_factory, finished.id)
    async with session_factory() as db:
        repo = ProcessingTaskRepository(db)
        task = await repo.get_by_voice_note_id(finished.id)
        await repo.mark_completed(task.job_id)
        await db.commit()
    scheduler = RecordingScheduler()

    counts = await runner.recover_stalled(scheduler, stall_seconds=600, max_attempts=3)

    assert counts == {"resumed": 0, "failed": 0, "closed": 0}
    assert scheduler.scheduled == []


async def test_resumed_task_is_not_picked_twice(session_factory, store, runner) -> None:
    note = await create_note(session_factory, store)
    await _stall(session_factory, note.id)
    scheduler = RecordingScheduler()

    await runner.recover_stalled(scheduler, stall_seconds=600, max_attempts=3)
    await runner.recover_stalled(scheduler, stall_seconds=600, max_attempts=3)

    assert len(scheduler.scheduled) == 1


async def test_scheduling_failure_is_logged_not_raised(session_factory, store, runner) -> None:
    note = await create_note(session_factory, store)
    await _stall(session_factory, note.id)

    counts = await runner.recover_stalled(RecordingScheduler(fail=True), stall_seconds=600, max_attempts=3)

    assert counts["resumed"] == 0
    assert (await load_note(session_factory, note.id)).status == "PROCESSING"
