"""Repository utilities for delivery orders."""
from __future__ import annotations

from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.db.models.enums import OrderStatus, Slot
from mealcycle.db.models.order import Order
from mealcycle.db.models.subscription_group import SubscriptionGroup


class OrderRepo:
    """Data-access helpers for :class:`Order`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def existing_keys(
        self, subscription_ids: Iterable[UUID], start: date, end: date
    ) -> set[tuple[UUID, date, Slot]]:
        ids = list(subscription_ids)
        if not ids:
            return set()
        result = await self.session.execute(
            select(Order.subscription_id, Order.service_date, Order.slot).where(
                Order.subscription_id.in_(ids),
                Order.service_date >= start,
                Order.service_date <= end,
            )
        )
        return {tuple(row) for row in result.all()}

    async def add_many(self, orders: Iterable[Order]) -> int:
        count = 0
        for order in orders:
            self.session.add(order)
            count += 1
        await self.session.flush()
        return count

    async def get_for_date(
        self, subscription_id: UUID, service_date: date, slot: Slot
    ) -> Optional[Order]:
        result = await self.session.execute(
            select(Order).where(
                Order.subscription_id == subscription_id,
                Order.service_date == service_date,
                Order.slot == slot,
            )
        )
        return result.scalar_one_or_none()

    async def scheduled_from(self, subscription_id: UUID, from_date: date) -> list[Order]:
        result = await self.session.execute(
            select(Order)
            .where(
                Order.subscription_id == subscription_id,
                Order.status == OrderStatus.SCHEDULED,
                Order.service_date >= from_date,
            )
            .order_by(Order.service_date)
        )
        return list(result.scalars().all())

    async def scheduled_for_vendor_on(
        self, vendor_id: UUID, service_date: date, slot: Optional[Slot]
    ) -> list[Order]:
        """Scheduled orders of a vendor on one date; ``slot=None`` means every slot."""

        stmt = (
            select(Order)
            .join(SubscriptionGroup, SubscriptionGroup.id == Order.group_id)
            .where(
                SubscriptionGroup.vendor_id == vendor_id,
                Order.service_date == service_date,
                Order.status == OrderStatus.SCHEDULED,
            )
        )
        if slot is not None:
            stmt = stmt.where(Order.slot == slot)
        result = await self.session.execute(stmt.order_by(Order.created_at, Order.id))
        return list(result.scalars().all())
