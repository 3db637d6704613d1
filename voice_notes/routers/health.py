# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Health check router."""
from fastapi import APIRouter, Depends

from voice_notes.deps import get_settings
from voice_notes.models.api import HealthResponse

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health_check(settings=Depends(get_settings)) -> HealthResponse:
    """Basic health check endpoint."""

    # Report configuration of dependent services
    services = {}

    services["openai_api"] = "configured" if settings.openai_api_key else "not_configured"
    services["storage"] = settings.storage_backend
    services["pipeline"] = settings.pipeline_backend
    services["speech_to_text"] = settings.stt_model
    services["text_generation"] = settings.llm_model

    return HealthResponse(status="healthy", version=settings.api_version, services=services)
