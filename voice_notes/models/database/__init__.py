# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Public API for SQLAlchemy models."""
from voice_notes.models.database.tasks_model import ProcessingTask
from voice_notes.models.database.voice_notes_model import ChecklistItem, VoiceNote

__all__ = [
    "VoiceNote",
    "ChecklistItem",
    "ProcessingTask",
]
