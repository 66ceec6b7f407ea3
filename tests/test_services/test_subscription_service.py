from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from mealcycle.core.exceptions import (
    InvalidActionError,
    OwnershipError,
    PaymentFailedError,
)
from mealcycle.db.models import Credit, Invoice, Order, SubscriptionGroup
from mealcycle.db.models.enums import (
    BillingPeriod,
    CreditReason,
    CreditStatus,
    GroupStatus,
    InvoiceStatus,
    OrderStatus,
    Slot,
    SubscriptionStatus,
)
from mealcycle.jobs import OrderGenerationJob, PaymentRetryJob
from mealcycle.services.payments import ChargeResult
from mealcycle.services.subscriptions import SubscriptionService

TODAY = dt.date(2024, 1, 12)
EVERY_DAY = ((Slot.LUNCH, (0, 1, 2, 3, 4, 5, 6)),)


class StaticGateway:
    def __init__(self, result: ChargeResult) -> None:
        self.result = result

    async def charge(self, invoice) -> ChargeResult:
        return self.result


@pytest.mark.asyncio
async def test_skip_within_limit_issues_credit_and_skips_order(session_factory, seed, fetch):
    vendor = await seed.vendor()
    group, (sub,) = await seed.group(vendor, slots=EVERY_DAY)
    invoice = await seed.invoice(group, status=InvoiceStatus.PAID)
    order = await seed.order(sub, invoice, dt.date(2024, 1, 16))

    async with session_factory() as session:
        outcome = await SubscriptionService(session).skip_meal(
            sub.id, group.customer_id, dt.date(2024, 1, 16), today=TODAY
        )

    assert outcome.order_skipped and outcome.credit_created
    assert outcome.skips_used == 1
    (credit,) = await fetch(select(Credit))
    assert credit.reason == CreditReason.CUSTOMER_SKIP
    assert credit.subscription_id == sub.id
    (stored_order,) = await fetch(select(Order).where(Order.id == order.id))
    assert stored_order.status == OrderStatus.SKIPPED


@pytest.mark.asyncio
async def test_skip_beyond_limit_gives_no_credit(session_factory, seed, fetch):
    vendor = await seed.vendor()
    group, (sub,) = await seed.group(vendor, slots=EVERY_DAY, skips_used=4, skip_limit=4)

    async with session_factory() as session:
        outcome = await SubscriptionService(session).skip_meal(
            sub.id, group.customer_id, dt.date(2024, 1, 20), today=TODAY
        )

    assert outcome.credit_created is False
    assert outcome.order_skipped is False
    assert await fetch(select(Credit)) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "service_date",
    [TODAY, dt.date(2024, 1, 13)],
    ids=["today", "not-a-delivery-day"],
)
async def test_skip_rejects_invalid_dates(session_factory, seed, service_date):
    vendor = await seed.vendor()
    group, (sub,) = await seed.group(vendor)

    async with session_factory() as session:
        with pytest.raises(InvalidActionError):
            await SubscriptionService(session).skip_meal(
                sub.id, group.customer_id, service_date, today=TODAY
            )


@pytest.mark.asyncio
async def test_skip_requires_active_subscription_and_ownership(session_factory, seed):
    vendor = await seed.vendor()
    paused, (paused_sub,) = await seed.group(
        vendor,
        status=GroupStatus.PAUSED,
        paused_at=dt.datetime(2024, 1, 10, tzinfo=dt.timezone.utc),
    )
    group, (sub,) = await seed.group(vendor)

    async with session_factory() as session:
        service = SubscriptionService(session)
        with pytest.raises(InvalidActionError):
            await service.skip_meal(paused_sub.id, paused.customer_id, dt.date(2024, 1, 15), today=TODAY)
        with pytest.raises(OwnershipError):
            await service.skip_meal(sub.id, uuid4(), dt.date(2024, 1, 15), today=TODAY)


@pytest.mark.asyncio
async def test_pause_then_resume_moves_stale_renewal_forward(session_factory, seed, fetch):
    vendor = await seed.vendor()
    group, (sub,) = await seed.group(vendor, period=BillingPeriod.WEEKLY, renewal_date=dt.date(2024, 1, 15))
    paused_now = dt.datetime(2024, 1, 12, 9, 0, tzinfo=dt.timezone.utc)

    async with session_factory() as session:
        service = SubscriptionService(session)
        paused = await service.pause_group(group.id, group.customer_id, now=paused_now)
        assert paused.status == GroupStatus.PAUSED
        with pytest.raises(InvalidActionError):
            await service.pause_group(group.id, group.customer_id)
        resumed = await service.resume_group(group.id, group.customer_id, today=dt.date(2024, 1, 24))

    assert resumed.status == GroupStatus.ACTIVE
    assert resumed.renewal_date == dt.date(2024, 1, 29)
    assert all(s.status == SubscriptionStatus.ACTIVE for s in resumed.subscriptions)
    (stored,) = await fetch(select(SubscriptionGroup))
    assert stored.paused_at is None


@pytest.mark.asyncio
async def test_cancel_is_final(session_factory, seed):
    vendor = await seed.vendor()
    group, _ = await seed.group(vendor)

    async with session_factory() as session:
        service = SubscriptionService(session)
        cancelled = await service.cancel_group(group.id, group.customer_id)
        assert cancelled.status == GroupStatus.CANCELLED
        with pytest.raises(InvalidActionError):
            await service.resume_group(group.id, group.customer_id)
        with pytest.raises(OwnershipError):
            await service.cancel_group(group.id, uuid4())


@pytest.mark.asyncio
async def test_vendor_holiday_credits_generated_orders(session_factory, seed, fetch):
    vendor = await seed.vendor()
    group, (sub,) = await seed.group(vendor)
    invoice = await seed.invoice(group, status=InvoiceStatus.PAID)
    await seed.order(sub, invoice, dt.date(2024, 1, 17))
    await seed.order(sub, invoice, dt.date(2024, 1, 18))

    async with session_factory() as session:
        service = SubscriptionService(session)
        outcome = await service.declare_holiday(
            vendor.id, vendor.owner_id, dt.date(2024, 1, 17), reason="Pongal", today=TODAY
        )
        with pytest.raises(InvalidActionError):
            await service.declare_holiday(vendor.id, vendor.owner_id, dt.date(2024, 1, 17), today=TODAY)
        with pytest.raises(OwnershipError):
            await service.declare_holiday(vendor.id, uuid4(), dt.date(2024, 1, 19), today=TODAY)

    assert (outcome.orders_skipped, outcome.credits_issued) == (1, 1)
    (credit,) = await fetch(select(Credit))
    assert credit.reason == CreditReason.VENDOR_HOLIDAY
    assert credit.customer_id == group.customer_id
    statuses = {o.service_date: o.status for o in await fetch(select(Order))}
    assert statuses == {
        dt.date(2024, 1, 17): OrderStatus.SKIPPED,
        dt.date(2024, 1, 18): OrderStatus.SCHEDULED,
    }


@pytest.mark.asyncio
async def test_manual_payment_failure_keeps_attempt_counter(session_factory, seed, reload):
    vendor = await seed.vendor()
    group, _ = await seed.group(vendor)
    invoice = await seed.invoice(group, status=InvoiceStatus.FAILED, payment_attempts=2)
    declined = StaticGateway(ChargeResult(success=False, error="Insufficient funds"))

    async with session_factory() as session:
        with pytest.raises(PaymentFailedError):
            await SubscriptionService(session, gateway=declined).pay_invoice(invoice.id, group.customer_id)

    stored = await reload(Invoice, invoice.id)
    assert stored.payment_attempts == 2
    assert stored.last_payment_error == "Insufficient funds"

    async with session_factory() as session:
        paid = await SubscriptionService(
            session, gateway=StaticGateway(ChargeResult(success=True))
        ).pay_invoice(invoice.id, group.customer_id)

    assert paid.status == InvoiceStatus.PAID
    assert paid.last_payment_error is None


class RecordingGateway:
    def __init__(self) -> None:
        self.charged = []

    async def charge(self, invoice) -> ChargeResult:
        self.charged.append(invoice.id)
        return ChargeResult(success=True)


@pytest.mark.asyncio
async def test_cancelled_group_is_neither_charged_nor_served(session_factory, seed, fetch, reload):
    vendor = await seed.vendor()
    group, (sub,) = await seed.group(vendor)
    paid = await seed.invoice(group, status=InvoiceStatus.PAID, lines=[(sub, 5, "100.00")])
    pending = await seed.invoice(
        group, cycle_start=dt.date(2024, 1, 22), cycle_end=dt.date(2024, 1, 28)
    )
    cancelled_at = dt.datetime(2024, 1, 12, 9, 0, tzinfo=dt.timezone.utc)

    async with session_factory() as session:
        await SubscriptionService(session).cancel_group(group.id, group.customer_id, now=cancelled_at)

    gateway = RecordingGateway()
    retry = await PaymentRetryJob(session_factory, gateway=gateway).run()
    generation = await OrderGenerationJob(session_factory).run()

    assert gateway.charged == []
    assert retry.retried == 0
    assert (await reload(Invoice, pending.id)).status == InvoiceStatus.VOID
    assert (await reload(Invoice, paid.id)).status == InvoiceStatus.PAID
    assert generation.orders_created == 0
    assert await fetch(select(Order)) == []

    # the paid week that will never be delivered comes back as credit
    (credit,) = await fetch(select(Credit))
    assert credit.reason == CreditReason.CUSTOMER_CANCEL
    assert credit.subscription_id is None
    assert credit.customer_id == group.customer_id
    assert (credit.meal_count, credit.amount) == (5, Decimal("500.00"))


@pytest.mark.asyncio
async def test_cancel_refunds_remaining_orders_and_meal_credits(session_factory, seed, fetch, reload):
    vendor = await seed.vendor()
    group, (sub,) = await seed.group(vendor)
    invoice = await seed.invoice(
        group,
        status=InvoiceStatus.PAID,
        orders_generated_at=dt.datetime(2024, 1, 13, tzinfo=dt.timezone.utc),
        lines=[(sub, 5, "100.00")],
    )
    delivered = await seed.order(sub, invoice, dt.date(2024, 1, 15), status=OrderStatus.DELIVERED)
    remaining = [
        await seed.order(sub, invoice, dt.date(2024, 1, day)) for day in (16, 17)
    ]
    leftover = await seed.credit(sub, customer_id=group.customer_id)

    async with session_factory() as session:
        await SubscriptionService(session).cancel_group(
            group.id,
            group.customer_id,
            now=dt.datetime(2024, 1, 16, 7, 0, tzinfo=dt.timezone.utc),
        )

    assert (await reload(Order, delivered.id)).status == OrderStatus.DELIVERED
    for order in remaining:
        stored = await reload(Order, order.id)
        assert (stored.status, stored.status_reason) == (OrderStatus.CANCELLED, "customer_cancel")
    assert (await reload(Credit, leftover.id)).status == CreditStatus.CONVERTED

    (refund,) = await fetch(select(Credit).where(Credit.reason == CreditReason.CUSTOMER_CANCEL))
    assert refund.meal_count == 3
    assert refund.amount == Decimal("300.00")
    assert refund.status == CreditStatus.AVAILABLE
