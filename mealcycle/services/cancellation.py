"""Release the prepaid balance of subscriptions that stop being served."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.core.config import settings
from mealcycle.core.exceptions import PriceNotFoundError
from mealcycle.db.models.credit import Credit
from mealcycle.db.models.enums import CreditReason, OrderStatus
from mealcycle.db.models.subscription import Subscription
from mealcycle.db.models.subscription_group import SubscriptionGroup
from mealcycle.repositories.credit_repo import CreditRepo
from mealcycle.repositories.invoice_repo import InvoiceRepo
from mealcycle.repositories.order_repo import OrderRepo
from mealcycle.repositories.vendor_repo import VendorRepo
from mealcycle.services.credits import CreditLedger
from mealcycle.services.cycles import iter_service_dates
from mealcycle.services.pricing import ZERO, count_scheduled, holiday_keys, round_amount


@dataclass
class UnusedBalance:
    meals: int = 0
    amount: Decimal = ZERO

    def __iadd__(self, other: "UnusedBalance") -> "UnusedBalance":
        self.meals += other.meals
        self.amount += other.amount
        return self


async def release_subscription(
    session: AsyncSession,
    group: SubscriptionGroup,
    sub: Subscription,
    from_date: date,
    as_of: date,
    status_reason: str,
) -> UnusedBalance:
    """Value and release everything ``sub`` has prepaid but not received since ``from_date``.

    That is its scheduled orders (valued at the per-meal price billed on their
    invoice line, then cancelled), the service days of paid cycles whose
    orders were never generated, and its available meal credits (valued at
    their amount or else the vendor's slot price, then converted).
    """

    balance = UnusedBalance()
    invoices = InvoiceRepo(session)
    vendors = VendorRepo(session)

    line_prices = await invoices.line_prices_for_subscription(sub.id)
    for order in await OrderRepo(session).scheduled_from(sub.id, from_date):
        balance.amount += Decimal(line_prices.get(order.invoice_id, ZERO))
        balance.meals += 1
        order.status = OrderStatus.CANCELLED
        order.status_reason = status_reason

    for invoice, line in await invoices.paid_lines_awaiting_orders(sub.id):
        span_start = max(invoice.cycle_start, group.start_date, from_date)
        if span_start > invoice.cycle_end:
            continue
        holidays = holiday_keys(
            await vendors.holidays_between(group.vendor_id, span_start, invoice.cycle_end)
        )
        dates = iter_service_dates(span_start, invoice.cycle_end, sub.weekdays)
        scheduled, _ = count_scheduled(dates, line.slot, holidays)
        meals = min(scheduled, line.scheduled_meals)
        balance.meals += meals
        balance.amount += Decimal(line.price_per_meal) * meals

    credits = CreditRepo(session)
    leftover = await credits.usable(sub.id, None, as_of)
    if leftover:
        prices = await vendors.slot_prices(group.vendor_id)
        for credit in leftover:
            if credit.amount is not None:
                balance.amount += Decimal(credit.amount)
            else:
                slot = credit.slot or sub.slot
                if slot not in prices:
                    raise PriceNotFoundError(group.vendor_id, slot.value)
                balance.amount += prices[slot] * credit.meal_count
            balance.meals += credit.meal_count
        await credits.convert([c.id for c in leftover])

    return balance


async def issue_balance_credit(
    session: AsyncSession,
    customer_id: UUID,
    balance: UnusedBalance,
    reason: CreditReason,
    issued_on: date,
    notes: str,
) -> Optional[Credit]:
    """Turn an unused balance into one customer-level credit; nothing is issued for zero."""

    amount = round_amount(balance.amount)
    if balance.meals <= 0 or amount <= 0:
        return None
    expiry_days = settings.billing.converted_credit_expiry_days
    return await CreditLedger(session).issue_credit(
        customer_id=customer_id,
        reason=reason,
        meal_count=balance.meals,
        amount=amount,
        issued_on=issued_on,
        expires_in_days=expiry_days,
        never_expires=expiry_days is None,
        notes=notes,
    )
