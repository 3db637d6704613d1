# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Public API for Pydantic schemas."""
from voice_notes.models.api.analysis_schema import AnalysisChecklistItem, AnalysisPayload
from voice_notes.models.api.common_schema import HealthResponse
from voice_notes.models.api.voice_notes_schema import (
    ChecklistItemResponse,
    VoiceNoteResponse,
    VoiceNoteSubmitResponse,
)

__all__ = [
    "AnalysisChecklistItem",
    "AnalysisPayload",
    "HealthResponse",
    "ChecklistItemResponse",
    "VoiceNoteResponse",
    "VoiceNoteSubmitResponse",
]
