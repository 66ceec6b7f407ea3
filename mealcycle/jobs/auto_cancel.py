"""Auto-cancel job: cancel subscriptions paused too long and refund unused meals as credit."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.core.config import settings
from mealcycle.db.base import as_utc
from mealcycle.db.models.enums import CreditReason, GroupStatus, JobType, SubscriptionStatus
from mealcycle.jobs.base import BatchJob, BatchResult
from mealcycle.repositories.invoice_repo import InvoiceRepo
from mealcycle.repositories.paging import PageKey
from mealcycle.repositories.subscription_repo import SubscriptionRepo
from mealcycle.services.cancellation import issue_balance_credit, release_subscription
from mealcycle.services.pricing import ZERO

logger = logging.getLogger(__name__)


@dataclass
class AutoCancelResult(BatchResult):
    cancelled: int = 0
    credits_converted: int = 0
    total_credit_amount: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "cancelled": self.cancelled,
            "credits_converted": self.credits_converted,
            "total_credit_amount": float(self.total_credit_amount),
            "errors": self.errors,
            "hasMore": self.has_more,
            "cursor": self.cursor,
        }


class AutoCancelJob(BatchJob):
    job_type = JobType.AUTO_CANCEL
    batch_size_setting = "auto_cancel_batch_size"

    def new_result(self) -> AutoCancelResult:
        return AutoCancelResult()

    async def fetch_page(
        self, session: AsyncSession, after: Optional[PageKey], limit: int
    ) -> List[PageKey]:
        return await SubscriptionRepo(session).paused_page(after, limit)

    async def process_item(
        self, session: AsyncSession, key: PageKey, result: AutoCancelResult
    ) -> bool:
        sub = await SubscriptionRepo(session).get_with_group(key.id, refresh=True)
        if sub is None or sub.status != SubscriptionStatus.PAUSED or sub.paused_at is None:
            return False

        now = self.now()
        paused_at = as_utc(sub.paused_at)
        max_pause_days = sub.max_pause_days or settings.billing.default_max_pause_days
        if now - paused_at <= timedelta(days=max_pause_days):
            return False

        group = sub.group
        sub.status = SubscriptionStatus.CANCELLED
        sub.cancelled_at = now

        balance = await release_subscription(
            session, group, sub, paused_at.date(), now.date(), "auto_cancel"
        )
        credit = await issue_balance_credit(
            session,
            group.customer_id,
            balance,
            CreditReason.AUTO_CANCEL,
            now.date(),
            f"Unused balance of cancelled subscription {sub.id}",
        )
        if credit is not None:
            result.credits_converted += 1
            result.total_credit_amount += credit.amount

        siblings = await SubscriptionRepo(session).list_for_group(group.id)
        if all(s.status == SubscriptionStatus.CANCELLED for s in siblings):
            group.status = GroupStatus.CANCELLED
            group.cancelled_at = now
            await InvoiceRepo(session).void_open_for_group(group.id)

        await session.commit()
        result.cancelled += 1
        logger.info(
            "Subscription %s auto-cancelled after %d day(s) paused; credit %s for %d meal(s)",
            sub.id,
            (now - paused_at).days,
            credit.amount if credit is not None else 0,
            balance.meals,
        )
        return True
