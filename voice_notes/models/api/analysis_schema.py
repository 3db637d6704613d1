# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Strict schema for the text-generation engine's analysis payload.

The engine's output is untrusted. These models run in strict mode and forbid
unknown keys, so anything that is not exactly the expected shape is rejected
instead of being coerced or defaulted.
"""
from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AnalysisChecklistItem(BaseModel):
    """One follow-up action as emitted by the engine."""

    model_config = ConfigDict(strict=True, extra="forbid")

    title: str = Field(..., min_length=1, description="Short imperative action")
    description: Optional[str] = Field(None, description="Optional elaboration")
    type: Literal["exam", "medication", "referral", "followup"]
    status: Literal["pending"]
    due_date: Optional[date] = Field(None, alias="dueDate", description="YYYY-MM-DD")

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value.strip()


class AnalysisPayload(BaseModel):
    """Summary plus ordered checklist."""

    model_config = ConfigDict(strict=True, extra="forbid")

    summary: str = Field(..., min_length=1)
    checklist: List[AnalysisChecklistItem]

    @field_validator("summary")
    @classmethod
    def summary_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("summary must not be blank")
        return value.strip()
