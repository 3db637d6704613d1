# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Models package - contains API schemas, database models and status enums."""

from voice_notes.models import api, database, status

__all__ = ["api", "database", "status"]
