# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Repository pattern implementations for database access."""
from voice_notes.repositories.processing_task_repository import ProcessingTaskRepository
from voice_notes.repositories.voice_note_repository import VoiceNoteRepository

__all__ = ["VoiceNoteRepository", "ProcessingTaskRepository"]
