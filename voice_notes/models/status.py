# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""VoiceNote lifecycle states and checklist enums."""
from enum import Enum
from typing import Dict, FrozenSet


class VoiceNoteStatus(str, Enum):
    """Lifecycle status of a voice note."""

    PROCESSING = "PROCESSING"
    TRANSCRIBED = "TRANSCRIBED"
    ANALYZED = "ANALYZED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class ChecklistItemType(str, Enum):
    """Kind of follow-up action extracted from a note."""

    EXAM = "exam"
    MEDICATION = "medication"
    REFERRAL = "referral"
    FOLLOWUP = "followup"


class ChecklistItemStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


TERMINAL_STATUSES: FrozenSet[VoiceNoteStatus] = frozenset(
    {VoiceNoteStatus.ANALYZED, VoiceNoteStatus.ERROR}
)

# Strictly forward; nothing leaves a terminal status.
ALLOWED_TRANSITIONS: Dict[VoiceNoteStatus, FrozenSet[VoiceNoteStatus]] = {
    VoiceNoteStatus.PROCESSING: frozenset({VoiceNoteStatus.TRANSCRIBED, VoiceNoteStatus.ERROR}),
    VoiceNoteStatus.TRANSCRIBED: frozenset({VoiceNoteStatus.ANALYZED, VoiceNoteStatus.ERROR}),
    VoiceNoteStatus.ANALYZED: frozenset(),
    VoiceNoteStatus.ERROR: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    """Return True if ``current -> target`` is a legal forward transition."""
    return VoiceNoteStatus(target) in ALLOWED_TRANSITIONS[VoiceNoteStatus(current)]
