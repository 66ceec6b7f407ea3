"""Repository utilities for subscription groups."""
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mealcycle.db.models.enums import GroupStatus
from mealcycle.db.models.subscription_group import SubscriptionGroup
from mealcycle.repositories.paging import PageKey, after_key


class GroupRepo:
    """Data-access helpers for :class:`SubscriptionGroup`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_with_subscriptions(
        self, group_id: UUID, *, refresh: bool = False
    ) -> Optional[SubscriptionGroup]:
        stmt = (
            select(SubscriptionGroup)
            .options(selectinload(SubscriptionGroup.subscriptions))
            .where(SubscriptionGroup.id == group_id)
        )
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def due_for_renewal(
        self, run_date: date, after: Optional[PageKey], limit: int
    ) -> list[PageKey]:
        """Keys of active groups renewing on ``run_date``, in creation order."""

        stmt = select(SubscriptionGroup.created_at, SubscriptionGroup.id).where(
            SubscriptionGroup.status == GroupStatus.ACTIVE,
            SubscriptionGroup.renewal_date == run_date,
        )
        result = await self.session.execute(after_key(stmt, SubscriptionGroup, after, limit))
        return [PageKey(*row) for row in result.all()]

    async def set_renewal_date(self, group_id: UUID, renewal_date: date) -> None:
        await self.session.execute(
            update(SubscriptionGroup)
            .where(SubscriptionGroup.id == group_id)
            .values(renewal_date=renewal_date)
        )
