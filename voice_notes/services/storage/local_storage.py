# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Local filesystem object store for development and tests."""
import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from voice_notes.exceptions import StorageError

logger = logging.getLogger(__name__)


class LocalStorageManager:
    """Stores blobs as files under ``base_path``, keyed by relative path."""

    def __init__(self, base_path: str = "./uploads"):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        # Keys must stay inside the storage root
        if self.base_path not in path.parents:
            raise StorageError(f"Invalid storage key: {key}")
        return path

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """Save blob content under ``key``."""
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error(f"Error saving {key}: {e}")
            raise StorageError(f"Error saving {key}: {e}") from e
        logger.info(f"Saved {key} ({len(data)} bytes, {content_type})")

    async def get(self, key: str) -> bytes:
        """Read blob content."""
        path = self._path_for(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            logger.error(f"Error reading {key}: {e}")
            raise StorageError(f"Error reading {key}: {e}") from e

    async def remove(self, key: str) -> None:
        """Delete a blob. A missing file counts as removed."""
        path = self._path_for(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.warning(f"Blob already absent: {key}")
        except OSError as e:
            logger.error(f"Error deleting {key}: {e}")
            raise StorageError(f"Error deleting {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        """Check if blob exists."""
        return self._path_for(key).exists()

    def presign(self, key: str, ttl: int = 3600) -> str:
        """Return a ``file://`` URL; local files have no expiry."""
        return self._path_for(key).as_uri()
