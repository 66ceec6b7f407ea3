"""Repository utilities for meal credits."""
from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.db.models.credit import Credit
from mealcycle.db.models.enums import CreditStatus, Slot
from mealcycle.repositories.paging import PageKey, after_key


def _usable(subscription_id: UUID, slot: Optional[Slot], as_of: date):
    clauses = [
        Credit.subscription_id == subscription_id,
        Credit.status == CreditStatus.AVAILABLE,
        or_(Credit.expires_at.is_(None), Credit.expires_at >= as_of),
    ]
    if slot is not None:
        clauses.append(or_(Credit.slot.is_(None), Credit.slot == slot))
    return clauses


class CreditRepo:
    """Data-access helpers for :class:`Credit`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, credit: Credit) -> Credit:
        self.session.add(credit)
        await self.session.flush()
        return credit

    async def usable(
        self, subscription_id: UUID, slot: Optional[Slot], as_of: date
    ) -> list[Credit]:
        """Available credits in consumption order: soonest expiry first, never-expiring last."""

        result = await self.session.execute(
            select(Credit)
            .where(*_usable(subscription_id, slot, as_of))
            .order_by(
                Credit.expires_at.is_(None),
                Credit.expires_at,
                Credit.created_at,
                Credit.id,
            )
            .with_for_update(skip_locked=True)
        )
        return list(result.scalars().all())

    async def available_meals(
        self, subscription_id: UUID, slot: Optional[Slot], as_of: date
    ) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(Credit.meal_count), 0)).where(
                *_usable(subscription_id, slot, as_of)
            )
        )
        return int(result.scalar_one())

    async def claim(self, credit_id: UUID, invoice_id: Optional[UUID], now: datetime) -> bool:
        """Mark one credit consumed if nobody else did first."""

        result = await self.session.execute(
            update(Credit)
            .where(Credit.id == credit_id, Credit.status == CreditStatus.AVAILABLE)
            .values(
                status=CreditStatus.CONSUMED,
                consumed_invoice_id=invoice_id,
                consumed_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def convert(self, credit_ids: Iterable[UUID]) -> int:
        ids = list(credit_ids)
        if not ids:
            return 0
        result = await self.session.execute(
            update(Credit)
            .where(Credit.id.in_(ids), Credit.status == CreditStatus.AVAILABLE)
            .values(status=CreditStatus.CONVERTED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def expirable_page(
        self, as_of: date, after: Optional[PageKey], limit: int
    ) -> list[PageKey]:
        stmt = select(Credit.created_at, Credit.id).where(
            Credit.status == CreditStatus.AVAILABLE,
            Credit.expires_at.is_not(None),
            Credit.expires_at < as_of,
        )
        result = await self.session.execute(after_key(stmt, Credit, after, limit))
        return [PageKey(*row) for row in result.all()]

    async def expire(self, credit_ids: Iterable[UUID], as_of: date) -> int:
        ids = list(credit_ids)
        if not ids:
            return 0
        result = await self.session.execute(
            update(Credit)
            .where(
                Credit.id.in_(ids),
                Credit.status == CreditStatus.AVAILABLE,
                Credit.expires_at < as_of,
            )
            .values(status=CreditStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
