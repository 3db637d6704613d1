# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Pipeline services: stages, orchestration, access and schedulers."""
from voice_notes.services.access_service import VoiceNoteAccessService
from voice_notes.services.analysis_service import AnalysisStage, OpenAITextGenerationEngine
from voice_notes.services.orchestrator import VoiceNoteOrchestrator
from voice_notes.services.scheduler import ArqScheduler, InProcessScheduler
from voice_notes.services.transcription_service import (
    OpenAISpeechToTextEngine,
    TranscriptionStage,
)

__all__ = [
    "AnalysisStage",
    "ArqScheduler",
    "InProcessScheduler",
    "OpenAISpeechToTextEngine",
    "OpenAITextGenerationEngine",
    "TranscriptionStage",
    "VoiceNoteAccessService",
    "VoiceNoteOrchestrator",
]
