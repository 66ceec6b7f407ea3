"""Repository utilities for slot subscriptions."""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mealcycle.db.models.enums import SubscriptionStatus
from mealcycle.db.models.subscription import Subscription
from mealcycle.repositories.paging import PageKey, after_key


class SubscriptionRepo:
    """Data-access helpers for :class:`Subscription`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_with_group(
        self, subscription_id: UUID, *, refresh: bool = False
    ) -> Optional[Subscription]:
        stmt = (
            select(Subscription)
            .options(selectinload(Subscription.group))
            .where(Subscription.id == subscription_id)
        )
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_group(self, group_id: UUID) -> list[Subscription]:
        result = await self.session.execute(
            select(Subscription)
            .where(Subscription.group_id == group_id)
            .order_by(Subscription.created_at, Subscription.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def paused_page(self, after: Optional[PageKey], limit: int) -> list[PageKey]:
        stmt = select(Subscription.created_at, Subscription.id).where(
            Subscription.status == SubscriptionStatus.PAUSED
        )
        result = await self.session.execute(after_key(stmt, Subscription, after, limit))
        return [PageKey(*row) for row in result.all()]

    async def reset_skips(self, group_id: UUID) -> None:
        await self.session.execute(
            update(Subscription).where(Subscription.group_id == group_id).values(skips_used=0)
        )
