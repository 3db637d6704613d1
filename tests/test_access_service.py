# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

import uuid

import pytest

from voice_notes.exceptions import NotFoundOrForbidden, StorageError
from voice_notes.services.access_service import VoiceNoteAccessService

from tests.helpers import count_items, count_notes, create_note, load_note, load_task


@pytest.fixture
def access(session_factory, store) -> VoiceNoteAccessService:
    return VoiceNoteAccessService(session_factory, store, audio_url_ttl=600)


async def test_doctor_and_patient_can_read(session_factory, store, access) -> None:
    note = await create_note(session_factory, store, doctor_id="D1", patient_id="P1")

    assert (await access.get(note.id, "D1")).id == note.id
    assert (await access.get(str(note.id), "P1")).id == note.id


@pytest.mark.parametrize("requester", ["D2", "P2", ""])
async def test_other_users_cannot_read(session_factory, store, access, requester) -> None:
    note = await create_note(session_factory, store, doctor_id="D1", patient_id="P1")

    with pytest.raises(NotFoundOrForbidden):
        await access.get(note.id, requester)


@pytest.mark.parametrize("voice_note_id", ["not-a-uuid", "", str(uuid.uuid4())])
async def test_missing_or_malformed_id(access, voice_note_id) -> None:
    with pytest.raises(NotFoundOrForbidden):
        await access.get(voice_note_id, "D1")


async def test_get_includes_checklist(session_factory, store, llm, analysis_stage, access) -> None:
    note = await create_note(session_factory, store, status="TRANSCRIBED", transcription="headache")
    await analysis_stage.analyze(note.id)

    fetched = await access.get(note.id, "P1")

    assert fetched.status == "ANALYZED"
    assert [item.title for item in fetched.checklist_items] == ["Order CBC"]


async def test_error_note_keeps_fields_visible(session_factory, store, access) -> None:
    note = await create_note(session_factory, store, status="ERROR", transcription="partial text")

    fetched = await access.get(note.id, "D1")

    assert fetched.status == "ERROR"
    assert fetched.transcription == "partial text"


async def test_list_for_doctor_and_patient(session_factory, store, access) -> None:
    first = await create_note(session_factory, store, doctor_id="D1", patient_id="P1")
    second = await create_note(session_factory, store, doctor_id="D1", patient_id="P2")
    other = await create_note(session_factory, store, doctor_id="D2", patient_id="P1")

    doctor_notes = await access.list("D1", is_doctor=True)
    assert [n.id for n in doctor_notes] == [second.id, first.id]

    narrowed = await access.list("D1", is_doctor=True, patient_id="P1")
    assert [n.id for n in narrowed] == [first.id]

    patient_notes = await access.list("P1", is_doctor=False)
    assert [n.id for n in patient_notes] == [other.id, first.id]

    assert await access.list("nobody", is_doctor=False) == []


async def test_doctor_deletes_blob_then_record(session_factory, store, llm, analysis_stage, access) -> None:
    note = await create_note(session_factory, store, status="TRANSCRIBED", transcription="headache")
    await analysis_stage.analyze(note.id)

    await access.delete(note.id, "D1")

    assert note.audio_key not in store.blobs
    assert store.removed == [note.audio_key]
    assert await load_note(session_factory, note.id) is None
    assert await load_task(session_factory, note.id) is None
    assert await count_items(session_factory, note.id) == 0


@pytest.mark.parametrize("requester", ["P1", "D2"])
async def test_only_owning_doctor_may_delete(session_factory, store, access, requester) -> None:
    note = await create_note(session_factory, store, doctor_id="D1", patient_id="P1")

    with pytest.raises(NotFoundOrForbidden):
        await access.delete(note.id, requester)

    assert note.audio_key in store.blobs
    assert await count_notes(session_factory) == 1


async def test_blob_failure_aborts_delete(session_factory, store, access) -> None:
    note = await create_note(session_factory, store)
    store.fail_remove = True

    with pytest.raises(StorageError):
        await access.delete(note.id, "D1")

    assert (await load_note(session_factory, note.id)).status == "PROCESSING"


async def test_delete_malformed_id(access) -> None:
    with pytest.raises(NotFoundOrForbidden):
        await access.delete("12345", "D1")


async def test_audio_url_uses_ttl(session_factory, store, access) -> None:
    note = await create_note(session_factory, store)

    url = access.audio_url(note)

    assert note.audio_key in url
    assert url.endswith("ttl=600")


async def test_access_never_changes_status(session_factory, store, access) -> None:
    note = await create_note(session_factory, store, status="TRANSCRIBED", transcription="t")

    await access.get(note.id, "D1")
    await access.list("D1", is_doctor=True)

    assert (await load_note(session_factory, note.id)).status == "TRANSCRIBED"
