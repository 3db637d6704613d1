# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Error taxonomy for the voice-note pipeline."""
from typing import Optional
from uuid import UUID


class VoiceNoteError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(VoiceNoteError):
    """Bad input to ``submit``; raised before anything is persisted."""


class StorageError(VoiceNoteError):
    """Object-store put/get/remove/presign failure."""


class EngineError(VoiceNoteError):
    """External engine call failed or timed out. Eligible for retry."""


class InvalidTransitionError(VoiceNoteError):
    """Requested status change is not a forward transition."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid status transition {current} -> {target}")
        self.current = current
        self.target = target


class StaleRunError(VoiceNoteError):
    """Another run already moved the note on; this run's result is discarded."""

    def __init__(self, message: str, voice_note_id: Optional[UUID] = None, stage: str = "pipeline"):
        super().__init__(message)
        self.voice_note_id = voice_note_id
        self.stage = stage


class StageError(VoiceNoteError):
    """A pipeline stage failed; terminal for the note."""

    stage = "pipeline"

    def __init__(self, message: str, voice_note_id: Optional[UUID] = None):
        super().__init__(message)
        self.voice_note_id = voice_note_id


class TranscriptionError(StageError):
    """Speech-to-text failed or produced unusable output."""

    stage = "transcription"


class AnalysisError(StageError):
    """Text generation failed or produced schema-invalid output."""

    stage = "analysis"


class NotFoundOrForbidden(VoiceNoteError):
    """Note does not exist or the requester may not access it."""

    def __init__(self, message: str = "Voice note not found or access denied"):
        super().__init__(message)
