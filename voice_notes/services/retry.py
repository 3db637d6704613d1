# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Bounded retry policy for external engine calls."""
import logging

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from voice_notes.exceptions import EngineError

logger = logging.getLogger(__name__)


def stage_retrying(
    stage: str, max_attempts: int, min_wait: float = 1.0, max_wait: float = 10.0
) -> AsyncRetrying:
    """
    Build the retry controller for one stage's engine call.

    Only ``EngineError`` is retried; anything else propagates on the first
    attempt. After the last attempt the original error is re-raised.

    Args:
        stage: Stage name used in log lines
        max_attempts: Total attempts including the first (1 disables retry)
        min_wait: Lower bound of the jittered backoff, in seconds
        max_wait: Upper bound of the jittered backoff, in seconds
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_random_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(EngineError),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            f"Retrying {stage} engine call after attempt {retry_state.attempt_number}: "
            f"{retry_state.outcome.exception()}"
        ),
    )
