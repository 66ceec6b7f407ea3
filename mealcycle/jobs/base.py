"""Batch job runner with run tracking, time budget and continuation cursor."""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, ClassVar, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mealcycle.core.config import settings
from mealcycle.db.base import utcnow
from mealcycle.db.models.enums import JobStatus, JobType
from mealcycle.repositories.job_run_repo import JobRunRepo
from mealcycle.repositories.paging import PageKey

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Counts shared by every job; subclasses add their own counters."""

    processed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    has_more: bool = False
    cursor: Optional[str] = None

    def record_error(self, item_id: Any, exc: BaseException) -> None:
        if len(self.errors) >= settings.jobs.max_recorded_errors:
            return
        self.errors.append({"id": str(item_id), "error": str(exc) or exc.__class__.__name__})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "errors": self.errors,
            "hasMore": self.has_more,
            "cursor": self.cursor,
        }


class BatchJob(ABC):
    """Runs one job invocation.

    Subclasses page through their work items with :meth:`fetch_page` and
    handle one item per :meth:`process_item` call, committing on success.
    A failing item is rolled back, recorded and skipped. Every run writes a
    :class:`JobRun` row, including runs that abort.
    """

    job_type: ClassVar[JobType]
    batch_size_setting: ClassVar[str]

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        batch_size: Optional[int] = None,
        max_duration: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.batch_size = batch_size or getattr(settings.jobs, self.batch_size_setting)
        self.max_duration = max_duration or settings.jobs.max_duration_seconds
        self.clock = clock
        self.now = now
        self._started: Optional[float] = None

    @abstractmethod
    def new_result(self) -> BatchResult:
        ...

    @abstractmethod
    async def fetch_page(
        self, session: AsyncSession, after: Optional[PageKey], limit: int
    ) -> List[PageKey]:
        ...

    @abstractmethod
    async def process_item(self, session: AsyncSession, key: PageKey, result: BatchResult) -> bool:
        """Handle one item; return ``False`` when it turned out not to need work."""

    def params(self) -> Dict[str, Any]:
        return {}

    def out_of_time(self) -> bool:
        return self._started is not None and self.clock() - self._started >= self.max_duration

    async def run(self, cursor: Optional[str] = None) -> BatchResult:
        self._started = self.clock()

        async with self.session_factory() as session:
            job_run = await JobRunRepo(session).start(
                self.job_type, {"params": self.params(), "cursor": cursor}, self.now()
            )
            await session.commit()
            run_id = job_run.id
        logger.info("Job %s started (run %s, cursor=%s)", self.job_type.value, run_id, cursor)

        try:
            after = PageKey.decode(cursor) if cursor else None
            result = await self.execute(after)
        except Exception as exc:
            logger.exception("Job %s failed", self.job_type.value)
            await self._finish(
                run_id,
                JobStatus.FAILED,
                {"params": self.params(), "cursor": cursor},
                cursor,
                str(exc) or exc.__class__.__name__,
            )
            raise

        await self._finish(run_id, JobStatus.SUCCESS, result.to_dict(), result.cursor, None)
        logger.info(
            "Job %s finished: processed=%d errors=%d has_more=%s",
            self.job_type.value,
            result.processed,
            len(result.errors),
            result.has_more,
        )
        return result

    async def execute(self, after: Optional[PageKey]) -> BatchResult:
        result = self.new_result()
        last = after
        async with self.session_factory() as session:
            while True:
                page = await self.fetch_page(session, last, self.batch_size)
                for key in page:
                    if self.out_of_time():
                        result.has_more = True
                        result.cursor = last.encode() if last else None
                        return result
                    try:
                        counted = await self.process_item(session, key, result)
                    except Exception as exc:
                        await session.rollback()
                        logger.exception("Job %s failed on item %s", self.job_type.value, key.id)
                        result.record_error(key.id, exc)
                        counted = True
                    if counted:
                        result.processed += 1
                    last = key
                if len(page) < self.batch_size:
                    return result

    async def _finish(
        self,
        run_id,
        status: JobStatus,
        payload: Dict[str, Any],
        cursor: Optional[str],
        last_error: Optional[str],
    ) -> None:
        async with self.session_factory() as session:
            await JobRunRepo(session).finish(
                run_id,
                status=status,
                payload=payload,
                cursor=cursor,
                last_error=last_error,
                now=self.now(),
            )
            await session.commit()
