"""Repository utilities for vendors, slot prices, holidays and coupons."""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.db.models.coupon import Coupon
from mealcycle.db.models.enums import Slot
from mealcycle.db.models.vendor import Vendor, VendorHoliday, VendorSlotPrice


class VendorRepo:
    """Data-access helpers for :class:`Vendor` and its pricing calendar."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, vendor_id: UUID) -> Optional[Vendor]:
        return await self.session.get(Vendor, vendor_id)

    async def slot_prices(self, vendor_id: UUID) -> dict[Slot, Decimal]:
        """Enabled per-meal prices keyed by slot."""

        result = await self.session.execute(
            select(VendorSlotPrice.slot, VendorSlotPrice.price_per_meal).where(
                VendorSlotPrice.vendor_id == vendor_id,
                VendorSlotPrice.is_enabled.is_(True),
            )
        )
        return {slot: Decimal(price) for slot, price in result.all()}

    async def holidays_between(
        self, vendor_id: UUID, start: date, end: date
    ) -> list[VendorHoliday]:
        result = await self.session.execute(
            select(VendorHoliday)
            .where(
                VendorHoliday.vendor_id == vendor_id,
                VendorHoliday.date >= start,
                VendorHoliday.date <= end,
            )
            .order_by(VendorHoliday.date)
        )
        return list(result.scalars().all())

    async def find_holiday(
        self, vendor_id: UUID, day: date, slot: Optional[Slot]
    ) -> Optional[VendorHoliday]:
        stmt = select(VendorHoliday).where(
            VendorHoliday.vendor_id == vendor_id,
            VendorHoliday.date == day,
        )
        if slot is None:
            stmt = stmt.where(VendorHoliday.slot.is_(None))
        else:
            stmt = stmt.where(VendorHoliday.slot == slot)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def add_holiday(
        self, vendor_id: UUID, day: date, slot: Optional[Slot], reason: Optional[str]
    ) -> VendorHoliday:
        holiday = VendorHoliday(vendor_id=vendor_id, date=day, slot=slot, reason=reason)
        self.session.add(holiday)
        await self.session.flush()
        return holiday


class CouponRepo:
    """Data-access helpers for :class:`Coupon`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, coupon_id: UUID) -> Optional[Coupon]:
        return await self.session.get(Coupon, coupon_id)

    async def get_active_by_code(self, code: str) -> Optional[Coupon]:
        result = await self.session.execute(
            select(Coupon).where(Coupon.code == code.strip().upper(), Coupon.is_active.is_(True))
        )
        return result.scalar_one_or_none()
