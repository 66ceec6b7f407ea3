"""Repository utilities for job run bookkeeping."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.db.models.enums import JobStatus, JobType
from mealcycle.db.models.job_run import JobRun


class JobRunRepo:
    """Data-access helpers for :class:`JobRun`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def start(self, job_type: JobType, payload: Dict[str, Any], now: datetime) -> JobRun:
        run = JobRun(job_type=job_type, status=JobStatus.RUNNING, payload=payload, run_at=now)
        self.session.add(run)
        await self.session.flush()
        return run

    async def finish(
        self,
        run_id: UUID,
        *,
        status: JobStatus,
        payload: Dict[str, Any],
        cursor: Optional[str],
        last_error: Optional[str],
        now: datetime,
    ) -> None:
        await self.session.execute(
            update(JobRun)
            .where(JobRun.id == run_id)
            .values(
                status=status,
                payload=payload,
                cursor=cursor,
                last_error=last_error,
                finished_at=now,
            )
            .execution_options(synchronize_session=False)
        )

    async def latest(self, job_type: JobType) -> Optional[JobRun]:
        result = await self.session.execute(
            select(JobRun)
            .where(JobRun.job_type == job_type)
            .order_by(JobRun.created_at.desc(), JobRun.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
