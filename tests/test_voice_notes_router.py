# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

import uuid

import httpx
import pytest

from voice_notes.main import app
from voice_notes.routers import voice_notes as voice_notes_router
from voice_notes.services.access_service import VoiceNoteAccessService

from tests.helpers import create_note, load_note

DOCTOR = {"X-User-Id": "D1", "X-User-Role": "doctor"}
PATIENT = {"X-User-Id": "P1", "X-User-Role": "patient"}


@pytest.fixture
async def client(session_factory, store, idle_orchestrator):
    app.state.orchestrator = idle_orchestrator
    app.state.access_service = VoiceNoteAccessService(session_factory, store, audio_url_ttl=900)
    voice_notes_router.limiter.enabled = False
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    voice_notes_router.limiter.enabled = True


def _upload(content: bytes = b"ID3 audio", content_type: str = "audio/mpeg") -> dict:
    return {"file": ("note.mp3", content, content_type)}


async def test_upload_returns_202(client, session_factory, recording_scheduler) -> None:
    response = await client.post(
        "/api/voice-notes",
        headers=DOCTOR,
        files=_upload(),
        data={"duration_seconds": "60", "patient_id": "P1"},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "PROCESSING"
    note = await load_note(session_factory, uuid.UUID(body["id"]))
    assert note.doctor_id == "D1"
    assert note.patient_id == "P1"
    assert len(recording_scheduler.scheduled) == 1


async def test_upload_by_patient_is_forbidden(client) -> None:
    response = await client.post(
        "/api/voice-notes",
        headers=PATIENT,
        files=_upload(),
        data={"duration_seconds": "60", "patient_id": "P1"},
    )
    assert response.status_code == 403


async def test_upload_without_identity_is_unauthorized(client) -> None:
    response = await client.post(
        "/api/voice-notes", files=_upload(), data={"duration_seconds": "60", "patient_id": "P1"}
    )
    assert response.status_code == 401


@pytest.mark.parametrize(
    "files,data",
    [
        (_upload(b""), {"duration_seconds": "60", "patient_id": "P1"}),
        (_upload(content_type="text/plain"), {"duration_seconds": "60", "patient_id": "P1"}),
        (_upload(b"x" * 2048), {"duration_seconds": "60", "patient_id": "P1"}),
        (_upload(), {"duration_seconds": "0", "patient_id": "P1"}),
    ],
)
async def test_upload_validation_errors(client, files, data) -> None:
    response = await client.post("/api/voice-notes", headers=DOCTOR, files=files, data=data)
    assert response.status_code == 400


async def test_upload_storage_failure_is_502(client, store) -> None:
    store.fail_put = True

    response = await client.post(
        "/api/voice-notes",
        headers=DOCTOR,
        files=_upload(),
        data={"duration_seconds": "60", "patient_id": "P1"},
    )

    assert response.status_code == 502


async def test_get_detail_with_audio_url(client, session_factory, store) -> None:
    note = await create_note(session_factory, store, status="TRANSCRIBED", transcription="headache")

    response = await client.get(f"/api/voice-notes/{note.id}", headers=PATIENT)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "TRANSCRIBED"
    assert body["transcription"] == "headache"
    assert body["checklist"] == []
    assert body["audio_url"].endswith("ttl=900")


@pytest.mark.parametrize("voice_note_id", ["nope", str(uuid.uuid4())])
async def test_get_unknown_is_404(client, voice_note_id) -> None:
    response = await client.get(f"/api/voice-notes/{voice_note_id}", headers=DOCTOR)
    assert response.status_code == 404


async def test_get_other_doctor_is_404(client, session_factory, store) -> None:
    note = await create_note(session_factory, store)

    response = await client.get(
        f"/api/voice-notes/{note.id}", headers={"X-User-Id": "D2", "X-User-Role": "doctor"}
    )

    assert response.status_code == 404


async def test_list_filters_by_patient(client, session_factory, store) -> None:
    mine = await create_note(session_factory, store, patient_id="P1")
    await create_note(session_factory, store, patient_id="P2")

    response = await client.get("/api/voice-notes", params={"patient_id": "P1"}, headers=DOCTOR)

    assert response.status_code == 200
    assert [n["id"] for n in response.json()] == [str(mine.id)]


async def test_delete_flow(client, session_factory, store) -> None:
    note = await create_note(session_factory, store)

    assert (await client.delete(f"/api/voice-notes/{note.id}", headers=PATIENT)).status_code == 404

    store.fail_remove = True
    assert (await client.delete(f"/api/voice-notes/{note.id}", headers=DOCTOR)).status_code == 502
    assert await load_note(session_factory, note.id) is not None

    store.fail_remove = False
    response = await client.delete(f"/api/voice-notes/{note.id}", headers=DOCTOR)
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert await load_note(session_factory, note.id) is None


async def test_health(client) -> None:
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
