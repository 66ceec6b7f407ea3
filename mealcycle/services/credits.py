"""Credit ledger: FIFO consumption, issuing and expiry of meal credits."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.core.config import settings
from mealcycle.db.base import utcnow
from mealcycle.db.models.credit import Credit
from mealcycle.db.models.enums import CreditReason, Slot
from mealcycle.repositories.credit_repo import CreditRepo

logger = logging.getLogger(__name__)


class CreditLedger:
    """Reads and writes credits inside the caller's transaction.

    Nothing here commits: consumption lands or rolls back together with the
    invoice that triggered it.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.repo = CreditRepo(session)

    async def available_meals(
        self, subscription_id: UUID, slot: Optional[Slot], as_of: date
    ) -> int:
        return await self.repo.available_meals(subscription_id, slot, as_of)

    async def apply_credits(
        self,
        subscription_id: UUID,
        slot: Optional[Slot],
        needed: int,
        as_of: date,
        invoice_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Consume up to ``needed`` meals of credit, soonest expiry first.

        Returns the number of meals applied. A credit claimed by a concurrent
        run is skipped. Multi-meal credits are only taken whole.
        """

        if needed <= 0:
            return 0
        now = now or utcnow()
        applied = 0
        for credit in await self.repo.usable(subscription_id, slot, as_of):
            remaining = needed - applied
            if remaining <= 0:
                break
            if credit.meal_count > remaining:
                continue
            if await self.repo.claim(credit.id, invoice_id, now):
                applied += credit.meal_count
            else:
                logger.info("Credit %s already consumed, skipping", credit.id)
        return applied

    async def issue_credit(
        self,
        *,
        customer_id: UUID,
        reason: CreditReason,
        subscription_id: Optional[UUID] = None,
        slot: Optional[Slot] = None,
        meal_count: int = 1,
        amount: Optional[Decimal] = None,
        issued_on: date,
        expires_in_days: Optional[int] = None,
        never_expires: bool = False,
        notes: Optional[str] = None,
    ) -> Credit:
        """Record a new credit.

        ``expires_in_days`` defaults to ``billing.credit_expiry_days``.
        """

        expires_at = None
        if not never_expires:
            days = expires_in_days
            if days is None:
                days = settings.billing.credit_expiry_days
            expires_at = issued_on + timedelta(days=days)
        credit = Credit(
            customer_id=customer_id,
            subscription_id=subscription_id,
            slot=slot,
            reason=reason,
            meal_count=meal_count,
            amount=amount,
            expires_at=expires_at,
            notes=notes,
        )
        await self.repo.add(credit)
        logger.info(
            "Issued %s credit %s (%d meal(s), amount=%s) for customer %s",
            reason.value,
            credit.id,
            meal_count,
            amount,
            customer_id,
        )
        return credit

    async def expire_credits(self, credit_ids: list[UUID], as_of: date) -> int:
        """Flip past-expiry available credits to ``expired``; rows are never deleted."""

        return await self.repo.expire(credit_ids, as_of)
