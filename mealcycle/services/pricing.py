"""Cycle pricing: per-slot billable meals, group totals and coupons."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Protocol, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.core.exceptions import NotFoundError, PriceNotFoundError
from mealcycle.db.models.enums import BillingPeriod, DiscountType, Slot
from mealcycle.repositories.vendor_repo import CouponRepo, VendorRepo
from mealcycle.services.cycles import first_full_cycle, iter_service_dates, prorated_span

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")

HolidayKey = tuple[date, Optional[Slot]]


class CouponLike(Protocol):
    discount_type: DiscountType
    discount_value: Decimal
    min_amount: Optional[Decimal]
    max_discount: Optional[Decimal]


def round_amount(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def holiday_keys(holidays: Iterable) -> set[HolidayKey]:
    """Reduce holiday rows to ``(date, slot)`` keys; a ``None`` slot covers the whole day."""

    return {(h.date, h.slot) for h in holidays}


def is_holiday(keys: set[HolidayKey], day: date, slot: Slot) -> bool:
    return (day, None) in keys or (day, slot) in keys


def count_scheduled(
    service_dates: Iterable[date], slot: Slot, holidays: set[HolidayKey]
) -> tuple[int, int]:
    """Return ``(scheduled_meals, holiday_meals)`` after excluding holidays."""

    total = 0
    on_holiday = 0
    for day in service_dates:
        total += 1
        if is_holiday(holidays, day, slot):
            on_holiday += 1
    return total - on_holiday, on_holiday


@dataclass
class SlotQuote:
    slot: Slot
    price_per_meal: Decimal
    scheduled_meals: int
    holiday_meals: int
    credits_applied: int
    billable_meals: int
    amount: Decimal
    subscription_id: Optional[UUID] = None


@dataclass
class GroupQuote:
    lines: list[SlotQuote] = field(default_factory=list)
    gross_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    amount: Decimal = ZERO

    @property
    def credits_applied(self) -> int:
        return sum(line.credits_applied for line in self.lines)


def quote_slot(
    *,
    slot: Slot,
    price_per_meal: Decimal,
    service_dates: Iterable[date],
    holidays: set[HolidayKey],
    credits_available: int = 0,
    subscription_id: Optional[UUID] = None,
) -> SlotQuote:
    """Price one slot: scheduled minus holidays minus credits, times the meal price."""

    scheduled, on_holiday = count_scheduled(service_dates, slot, holidays)
    credits_applied = max(0, min(credits_available, scheduled))
    billable = max(0, scheduled - credits_applied)
    return SlotQuote(
        slot=slot,
        price_per_meal=Decimal(price_per_meal),
        scheduled_meals=scheduled,
        holiday_meals=on_holiday,
        credits_applied=credits_applied,
        billable_meals=billable,
        amount=round_amount(Decimal(price_per_meal) * billable),
        subscription_id=subscription_id,
    )


def apply_coupon(amount: Decimal, coupon: Optional[CouponLike]) -> tuple[Decimal, Decimal]:
    """Return ``(discounted_amount, discount_amount)`` for ``amount``."""

    amount = Decimal(amount)
    if coupon is None:
        return round_amount(amount), ZERO
    if coupon.min_amount is not None and amount < Decimal(coupon.min_amount):
        return round_amount(amount), ZERO

    if coupon.discount_type == DiscountType.PERCENT:
        discount = amount * Decimal(coupon.discount_value) / Decimal(100)
        if coupon.max_discount is not None and discount > Decimal(coupon.max_discount):
            discount = Decimal(coupon.max_discount)
    else:
        discount = Decimal(coupon.discount_value)

    discount = round_amount(min(max(discount, ZERO), amount))
    return round_amount(amount - discount), discount


def quote_group(lines: Sequence[SlotQuote], coupon: Optional[CouponLike] = None) -> GroupQuote:
    gross = round_amount(sum((line.amount for line in lines), ZERO))
    net, discount = apply_coupon(gross, coupon)
    return GroupQuote(lines=list(lines), gross_amount=gross, discount_amount=discount, amount=net)


@dataclass
class SlotSelection:
    slot: Slot
    weekdays: list[int]


@dataclass
class PricePreview:
    vendor_id: UUID
    period: BillingPeriod
    start_date: date
    prorated_start: Optional[date]
    prorated_end: Optional[date]
    prorated: Optional[GroupQuote]
    cycle_start: date
    cycle_end: date
    renewal_date: date
    next_cycle: GroupQuote


class PricingService:
    """Loads vendor prices, holidays and coupons, then prices through the pure helpers."""

    def __init__(self, session: AsyncSession) -> None:
        self.vendors = VendorRepo(session)
        self.coupons = CouponRepo(session)

    async def prices_for(self, vendor_id: UUID, slots: Iterable[Slot]) -> dict[Slot, Decimal]:
        prices = await self.vendors.slot_prices(vendor_id)
        for slot in slots:
            if slot not in prices:
                raise PriceNotFoundError(vendor_id, Slot(slot).value)
        return prices

    async def quote_span(
        self,
        vendor_id: UUID,
        selections: Sequence[SlotSelection],
        start: date,
        end: date,
        prices: dict[Slot, Decimal],
        coupon: Optional[CouponLike],
    ) -> GroupQuote:
        holidays = holiday_keys(await self.vendors.holidays_between(vendor_id, start, end))
        lines = [
            quote_slot(
                slot=selection.slot,
                price_per_meal=prices[selection.slot],
                service_dates=iter_service_dates(start, end, selection.weekdays),
                holidays=holidays,
            )
            for selection in selections
        ]
        return quote_group(lines, coupon)

    async def preview(
        self,
        vendor_id: UUID,
        period: BillingPeriod,
        start_date: date,
        selections: Sequence[SlotSelection],
        coupon_code: Optional[str] = None,
    ) -> PricePreview:
        """Price the prorated first stretch and the first full cycle of a new group."""

        if await self.vendors.get(vendor_id) is None:
            raise NotFoundError("Vendor not found")
        coupon = None
        if coupon_code:
            coupon = await self.coupons.get_active_by_code(coupon_code)
            if coupon is None:
                raise NotFoundError("Coupon not found")

        prices = await self.prices_for(vendor_id, [s.slot for s in selections])

        prorated = None
        span = prorated_span(period, start_date)
        if span is not None:
            prorated = await self.quote_span(vendor_id, selections, span[0], span[1], prices, coupon)

        cycle = first_full_cycle(period, start_date)
        next_cycle = await self.quote_span(
            vendor_id, selections, cycle.cycle_start, cycle.cycle_end, prices, coupon
        )
        logger.debug(
            "Preview vendor=%s period=%s start=%s next_cycle=%s",
            vendor_id,
            period.value,
            start_date,
            next_cycle.amount,
        )
        return PricePreview(
            vendor_id=vendor_id,
            period=period,
            start_date=start_date,
            prorated_start=span[0] if span else None,
            prorated_end=span[1] if span else None,
            prorated=prorated,
            cycle_start=cycle.cycle_start,
            cycle_end=cycle.cycle_end,
            renewal_date=cycle.renewal_date,
            next_cycle=next_cycle,
        )
