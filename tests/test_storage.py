# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

import re

import pytest

from voice_notes.deps import Settings
from voice_notes.exceptions import StorageError
from voice_notes.services.storage import (
    LocalStorageManager,
    audio_extension,
    build_audio_key,
    get_storage_manager,
)


@pytest.fixture
def local_store(tmp_path) -> LocalStorageManager:
    return LocalStorageManager(base_path=str(tmp_path / "uploads"))


async def test_put_get_remove(local_store) -> None:
    key = "voice-notes/D1/abc.mp3"

    await local_store.put(key, b"audio-bytes", "audio/mpeg")

    assert await local_store.exists(key)
    assert await local_store.get(key) == b"audio-bytes"
    assert local_store.presign(key).startswith("file://")

    await local_store.remove(key)
    assert not await local_store.exists(key)


async def test_get_missing_raises_storage_error(local_store) -> None:
    with pytest.raises(StorageError):
        await local_store.get("voice-notes/D1/missing.mp3")


async def test_remove_missing_is_not_an_error(local_store) -> None:
    await local_store.remove("voice-notes/D1/missing.mp3")


async def test_rejects_keys_outside_root(local_store) -> None:
    with pytest.raises(StorageError):
        await local_store.put("../outside.mp3", b"x", "audio/mpeg")


def test_build_audio_key() -> None:
    key = build_audio_key("D1", "audio/ogg")
    assert re.fullmatch(r"voice-notes/D1/[0-9a-f-]{36}\.ogg", key)
    assert build_audio_key("D1", "audio/ogg") != key


@pytest.mark.parametrize(
    "content_type,extension",
    [
        ("audio/mpeg", "mp3"),
        ("audio/wav", "wav"),
        ("audio/x-wav", "wav"),
        ("audio/webm;codecs=opus", "webm"),
        ("AUDIO/OGG", "ogg"),
        ("audio/mp4", "m4a"),
        ("audio/flac", "flac"),
        ("application/octet-stream", "mp3"),
    ],
)
def test_audio_extension(content_type: str, extension: str) -> None:
    assert audio_extension(content_type) == extension


def test_factory_builds_local_backend(tmp_path) -> None:
    settings = Settings(storage_backend="local", upload_dir=str(tmp_path / "u"))
    assert isinstance(get_storage_manager(settings), LocalStorageManager)


def test_factory_rejects_unknown_backend() -> None:
    with pytest.raises(ValueError):
        get_storage_manager(Settings(storage_backend="ftp"))
