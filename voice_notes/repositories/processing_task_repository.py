# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Repository for ProcessingTask operations."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from voice_notes.models import database as db_models
from voice_notes.models.database.voice_notes_model import utcnow


class ProcessingTaskRepository:
    """Repository for ProcessingTask CRUD operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, voice_note_id: UUID, job_id: str) -> db_models.ProcessingTask:
        """
        Create the task record for a newly submitted voice note.

        Args:
            voice_note_id: Associated voice note ID
            job_id: Unique job identifier handed to the scheduler

        Returns:
            Created ProcessingTask instance
        """
        task = db_models.ProcessingTask(
            voice_note_id=voice_note_id,
            job_id=job_id,
            attempts=0,
        )
        self.db.add(task)
        await self.db.flush()
        return task

    async def get_by_job_id(self, job_id: str) -> Optional[db_models.ProcessingTask]:
        """Get task by job ID."""
        result = await self.db.execute(
            select(db_models.ProcessingTask).where(db_models.ProcessingTask.job_id == job_id)
        )
        return result.scalar_one_or_none()

    async def get_by_voice_note_id(self, voice_note_id: UUID) -> Optional[db_models.ProcessingTask]:
        """Get task by voice note ID."""
        result = await self.db.execute(
            select(db_models.ProcessingTask).where(
                db_models.ProcessingTask.voice_note_id == voice_note_id
            )
        )
        return result.scalar_one_or_none()

    async def claim(self, job_id: str, worker_id: str, lease_cutoff: datetime) -> bool:
        """
        Start a run of ``job_id`` unless another run holds it.

        One UPDATE does the check and the write, so of two runs of the same
        job only one gets the task. A run started before ``lease_cutoff`` is
        presumed dead and can be taken over.

        Args:
            job_id: Job identifier
            worker_id: Worker identifier
            lease_cutoff: Runs started before this no longer hold the task

        Returns:
            True if this run now holds the task; False if the task is
            completed, held by a live run, or missing
        """
        now = utcnow()
        result = await self.db.execute(
            update(db_models.ProcessingTask)
            .where(
                db_models.ProcessingTask.job_id == job_id,
                db_models.ProcessingTask.completed_at.is_(None),
                or_(
                    db_models.ProcessingTask.started_at.is_(None),
                    db_models.ProcessingTask.started_at < lease_cutoff,
                ),
            )
            .values(
                worker_id=worker_id,
                started_at=now,
                attempts=db_models.ProcessingTask.attempts + 1,
                error_details=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_stage(self, job_id: str, stage: str) -> Optional[db_models.ProcessingTask]:
        """Record the stage the run is entering."""
        task = await self.get_by_job_id(job_id)
        if task:
            task.stage = stage
            task.updated_at = utcnow()
            await self.db.flush()
        return task

    async def touch(self, job_id: str) -> Optional[db_models.ProcessingTask]:
        """Bump ``updated_at`` so the recovery sweep leaves the task alone."""
        task = await self.get_by_job_id(job_id)
        if task:
            task.updated_at = utcnow()
            await self.db.flush()
        return task

    async def mark_completed(
        self, job_id: str, completed_at: Optional[datetime] = None
    ) -> Optional[db_models.ProcessingTask]:
        """Mark task as completed."""
        task = await self.get_by_job_id(job_id)
        if task:
            task.completed_at = completed_at or utcnow()
            await self.db.flush()
        return task

    async def mark_failed(
        self,
        job_id: str,
        error_details: dict,
        completed_at: Optional[datetime] = None,
    ) -> Optional[db_models.ProcessingTask]:
        """
        Mark task as failed with error details.

        Args:
            job_id: Job identifier
            error_details: Error information dictionary
            completed_at: Failure timestamp (defaults to now)

        Returns:
            Updated ProcessingTask instance or None
        """
        task = await self.get_by_job_id(job_id)
        if task:
            task.completed_at = completed_at or utcnow()
            task.error_details = error_details
            await self.db.flush()
        return task

    async def list_stalled(self, older_than: datetime) -> List[db_models.ProcessingTask]:
        """
        Get incomplete tasks not touched since ``older_than``.

        Args:
            older_than: Datetime threshold

        Returns:
            List of stalled ProcessingTask instances, oldest first
        """
        result = await self.db.execute(
            select(db_models.ProcessingTask)
            .where(
                db_models.ProcessingTask.completed_at.is_(None),
                db_models.ProcessingTask.updated_at < older_than,
            )
            .order_by(db_models.ProcessingTask.updated_at)
        )
        return list(result.scalars().all())
