"""Credit expiry sweep."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.db.models.enums import JobType
from mealcycle.jobs.base import BatchJob, BatchResult
from mealcycle.repositories.credit_repo import CreditRepo
from mealcycle.repositories.paging import PageKey
from mealcycle.services.credits import CreditLedger

logger = logging.getLogger(__name__)


@dataclass
class CreditExpiryResult(BatchResult):
    expired: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "expired": self.expired,
            "errors": self.errors,
            "hasMore": self.has_more,
            "cursor": self.cursor,
        }


class CreditExpiryJob(BatchJob):
    """Marks available credits past ``expires_at`` as expired."""

    job_type = JobType.CREDIT_EXPIRY
    batch_size_setting = "credit_expiry_batch_size"

    def __init__(self, session_factory, as_of: date, **kwargs) -> None:
        super().__init__(session_factory, **kwargs)
        self.as_of = as_of

    def params(self) -> Dict[str, Any]:
        return {"as_of": self.as_of.isoformat()}

    def new_result(self) -> CreditExpiryResult:
        return CreditExpiryResult()

    async def fetch_page(
        self, session: AsyncSession, after: Optional[PageKey], limit: int
    ) -> List[PageKey]:
        return await CreditRepo(session).expirable_page(self.as_of, after, limit)

    async def process_item(
        self, session: AsyncSession, key: PageKey, result: CreditExpiryResult
    ) -> bool:
        expired = await CreditLedger(session).expire_credits([key.id], self.as_of)
        await session.commit()
        result.expired += expired
        if expired:
            logger.debug("Credit %s expired as of %s", key.id, self.as_of)
        return bool(expired)
