# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Object store backends, key convention and factory."""
import uuid
from typing import Dict

from voice_notes.deps import Settings
from voice_notes.services.storage.local_storage import LocalStorageManager
from voice_notes.services.storage.s3_storage import S3StorageManager

__all__ = [
    "LocalStorageManager",
    "S3StorageManager",
    "AUDIO_EXTENSIONS",
    "audio_extension",
    "build_audio_key",
    "get_storage_manager",
]

KEY_PREFIX = "voice-notes"

AUDIO_EXTENSIONS: Dict[str, str] = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/x-m4a": "m4a",
    "audio/flac": "flac",
}


def base_content_type(content_type: str) -> str:
    """Strip MIME parameters, e.g. ``audio/webm;codecs=opus`` -> ``audio/webm``."""
    return content_type.split(";", 1)[0].strip().lower()


def audio_extension(content_type: str) -> str:
    """File extension for an audio MIME type; ``mp3`` when unknown."""
    return AUDIO_EXTENSIONS.get(base_content_type(content_type), "mp3")


def build_audio_key(doctor_id: str, content_type: str) -> str:
    """Object key for a new upload: ``voice-notes/{doctor_id}/{uuid}.{ext}``."""
    return f"{KEY_PREFIX}/{doctor_id}/{uuid.uuid4()}.{audio_extension(content_type)}"


def get_storage_manager(settings: Settings) -> LocalStorageManager | S3StorageManager:
    """
    Get storage manager based on the configured backend.

    Args:
        settings: Application settings

    Returns:
        LocalStorageManager or S3StorageManager instance
    """
    if settings.storage_backend == "s3":
        scheme = "https" if settings.minio_use_ssl else "http"
        return S3StorageManager(
            bucket_name=settings.minio_bucket_name,
            endpoint_url=f"{scheme}://{settings.minio_endpoint}",
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            use_ssl=settings.minio_use_ssl,
        )
    if settings.storage_backend == "local":
        return LocalStorageManager(base_path=settings.upload_dir)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
