"""Customer and vendor actions that feed the billing jobs."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.core.exceptions import (
    InvalidActionError,
    NotFoundError,
    OwnershipError,
    PaymentFailedError,
)
from mealcycle.db.base import as_utc, utcnow
from mealcycle.db.models.enums import (
    CreditReason,
    GroupStatus,
    InvoiceStatus,
    OrderStatus,
    Slot,
    SubscriptionStatus,
)
from mealcycle.db.models.invoice import Invoice
from mealcycle.db.models.subscription import Subscription
from mealcycle.db.models.subscription_group import SubscriptionGroup
from mealcycle.db.models.vendor import VendorHoliday
from mealcycle.repositories.group_repo import GroupRepo
from mealcycle.repositories.invoice_repo import InvoiceRepo
from mealcycle.repositories.order_repo import OrderRepo
from mealcycle.repositories.subscription_repo import SubscriptionRepo
from mealcycle.repositories.vendor_repo import VendorRepo
from mealcycle.services.cancellation import UnusedBalance, issue_balance_credit, release_subscription
from mealcycle.services.credits import CreditLedger
from mealcycle.services.cycles import get_cycle_boundaries
from mealcycle.services.payments import PaymentGateway, get_payment_gateway

logger = logging.getLogger(__name__)


@dataclass
class SkipOutcome:
    subscription_id: UUID
    service_date: date
    slot: Slot
    order_skipped: bool
    credit_created: bool
    skips_used: int
    skip_limit: int


@dataclass
class HolidayOutcome:
    holiday: VendorHoliday
    orders_skipped: int
    credits_issued: int


class SubscriptionService:
    """Pause, resume, cancel, skip and pay on behalf of an authenticated user.

    Every action commits its own transaction.
    """

    def __init__(self, session: AsyncSession, gateway: Optional[PaymentGateway] = None) -> None:
        self.session = session
        self.groups = GroupRepo(session)
        self.subscriptions = SubscriptionRepo(session)
        self.orders = OrderRepo(session)
        self.ledger = CreditLedger(session)
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = get_payment_gateway()
        return self._gateway

    async def _owned_group(self, group_id: UUID, customer_id: UUID) -> SubscriptionGroup:
        group = await self.groups.get_with_subscriptions(group_id)
        if group is None:
            raise NotFoundError("Subscription group not found")
        if group.customer_id != customer_id:
            raise OwnershipError()
        return group

    async def _owned_subscription(self, subscription_id: UUID, customer_id: UUID) -> Subscription:
        sub = await self.subscriptions.get_with_group(subscription_id)
        if sub is None:
            raise NotFoundError("Subscription not found")
        if sub.group.customer_id != customer_id:
            raise OwnershipError()
        return sub

    async def pause_group(
        self, group_id: UUID, customer_id: UUID, now: Optional[datetime] = None
    ) -> SubscriptionGroup:
        group = await self._owned_group(group_id, customer_id)
        if group.status != GroupStatus.ACTIVE:
            raise InvalidActionError(f"Cannot pause a {group.status.value} subscription")
        now = now or utcnow()
        group.status = GroupStatus.PAUSED
        group.paused_at = now
        for sub in group.subscriptions:
            if sub.status == SubscriptionStatus.ACTIVE:
                sub.status = SubscriptionStatus.PAUSED
                sub.paused_at = now
        await self.session.commit()
        logger.info("Group %s paused by customer %s", group.id, customer_id)
        return group

    async def resume_group(
        self, group_id: UUID, customer_id: UUID, today: Optional[date] = None
    ) -> SubscriptionGroup:
        """Reactivate a paused group; a renewal date in the past moves to the next cycle."""

        group = await self._owned_group(group_id, customer_id)
        if group.status != GroupStatus.PAUSED:
            raise InvalidActionError(f"Cannot resume a {group.status.value} subscription")
        today = today or utcnow().date()
        group.status = GroupStatus.ACTIVE
        group.paused_at = None
        for sub in group.subscriptions:
            if sub.status == SubscriptionStatus.PAUSED:
                sub.status = SubscriptionStatus.ACTIVE
                sub.paused_at = None
        if group.renewal_date < today:
            group.renewal_date = get_cycle_boundaries(group.period, today).cycle_start
        await self.session.commit()
        logger.info("Group %s resumed, next renewal %s", group.id, group.renewal_date)
        return group

    async def cancel_group(
        self, group_id: UUID, customer_id: UUID, now: Optional[datetime] = None
    ) -> SubscriptionGroup:
        """Cancel the group for good.

        Unpaid invoices are voided. Meals already paid for but not yet served
        (scheduled orders from today, or from the pause date of a paused
        subscription, plus leftover meal credits) come back as one
        customer-level credit.
        """

        group = await self._owned_group(group_id, customer_id)
        if group.status == GroupStatus.CANCELLED:
            raise InvalidActionError("Subscription already cancelled")
        now = now or utcnow()
        today = now.date()

        balance = UnusedBalance()
        for sub in group.subscriptions:
            if sub.status == SubscriptionStatus.CANCELLED:
                continue
            from_date = today
            if sub.status == SubscriptionStatus.PAUSED and sub.paused_at is not None:
                from_date = min(today, as_utc(sub.paused_at).date())
            balance += await release_subscription(
                self.session, group, sub, from_date, today, "customer_cancel"
            )
            sub.status = SubscriptionStatus.CANCELLED
            sub.cancelled_at = now
        group.status = GroupStatus.CANCELLED
        group.cancelled_at = now

        voided = await InvoiceRepo(self.session).void_open_for_group(group.id)
        credit = await issue_balance_credit(
            self.session,
            customer_id,
            balance,
            CreditReason.CUSTOMER_CANCEL,
            today,
            f"Unused balance of cancelled group {group.id}",
        )
        await self.session.commit()
        logger.info(
            "Group %s cancelled by customer %s: %d invoice(s) voided, credit %s for %d meal(s)",
            group.id,
            customer_id,
            voided,
            credit.amount if credit is not None else 0,
            balance.meals,
        )
        return group

    async def skip_meal(
        self,
        subscription_id: UUID,
        customer_id: UUID,
        service_date: date,
        today: Optional[date] = None,
    ) -> SkipOutcome:
        """Skip one future meal; within the skip limit the meal becomes a credit."""

        sub = await self._owned_subscription(subscription_id, customer_id)
        today = today or utcnow().date()
        if sub.status != SubscriptionStatus.ACTIVE:
            raise InvalidActionError(f"Cannot skip meal for subscription in {sub.status.value} status")
        if service_date <= today:
            raise InvalidActionError("Only future meals can be skipped")
        if service_date.weekday() not in sub.weekdays:
            raise InvalidActionError("No meal scheduled on that date")

        order = await self.orders.get_for_date(sub.id, service_date, sub.slot)
        if order is not None and order.status != OrderStatus.SCHEDULED:
            raise InvalidActionError(f"Cannot skip order in {order.status.value} status")
        if order is not None:
            order.status = OrderStatus.SKIPPED
            order.status_reason = "customer_skip"

        credit_created = sub.skips_used < sub.skip_limit
        if credit_created:
            await self.ledger.issue_credit(
                customer_id=customer_id,
                subscription_id=sub.id,
                slot=sub.slot,
                reason=CreditReason.CUSTOMER_SKIP,
                issued_on=today,
            )
            sub.skips_used += 1

        await self.session.commit()
        return SkipOutcome(
            subscription_id=sub.id,
            service_date=service_date,
            slot=sub.slot,
            order_skipped=order is not None,
            credit_created=credit_created,
            skips_used=sub.skips_used,
            skip_limit=sub.skip_limit,
        )

    async def declare_holiday(
        self,
        vendor_id: UUID,
        owner_id: UUID,
        day: date,
        slot: Optional[Slot] = None,
        reason: Optional[str] = None,
        today: Optional[date] = None,
    ) -> HolidayOutcome:
        """Record a vendor holiday and credit meals already generated for that day.

        Cycles not yet billed leave the holiday out through pricing instead.
        """

        vendors = VendorRepo(self.session)
        vendor = await vendors.get(vendor_id)
        if vendor is None:
            raise NotFoundError("Vendor not found")
        if vendor.owner_id != owner_id:
            raise OwnershipError()
        today = today or utcnow().date()
        if day < today:
            raise InvalidActionError("Holidays cannot be declared in the past")
        if await vendors.find_holiday(vendor_id, day, slot) is not None:
            raise InvalidActionError("Holiday already declared")

        try:
            holiday = await vendors.add_holiday(vendor_id, day, slot, reason)
        except IntegrityError as exc:
            await self.session.rollback()
            raise InvalidActionError("Holiday already declared") from exc

        credits_issued = 0
        affected = await self.orders.scheduled_for_vendor_on(vendor_id, day, slot)
        for order in affected:
            sub = await self.subscriptions.get_with_group(order.subscription_id)
            order.status = OrderStatus.SKIPPED
            order.status_reason = "vendor_holiday"
            await self.ledger.issue_credit(
                customer_id=sub.group.customer_id,
                subscription_id=sub.id,
                slot=order.slot,
                reason=CreditReason.VENDOR_HOLIDAY,
                issued_on=today,
            )
            credits_issued += 1

        await self.session.commit()
        logger.info(
            "Vendor %s holiday on %s (%s): %d order(s) skipped",
            vendor_id,
            day,
            slot.value if slot else "all slots",
            len(affected),
        )
        return HolidayOutcome(holiday=holiday, orders_skipped=len(affected), credits_issued=credits_issued)

    async def pay_invoice(
        self, invoice_id: UUID, customer_id: UUID, now: Optional[datetime] = None
    ) -> Invoice:
        """Charge an open invoice on the customer's request.

        Manual attempts do not count toward the automatic retry limit.
        """

        invoice = await InvoiceRepo(self.session).get(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        group = await self.groups.get_with_subscriptions(invoice.group_id)
        if group is None or group.customer_id != customer_id:
            raise OwnershipError()
        if invoice.status not in (InvoiceStatus.PENDING, InvoiceStatus.FAILED):
            raise InvalidActionError(f"Invoice is {invoice.status.value}")

        now = now or utcnow()
        charge = await self.gateway.charge(invoice)
        invoice.last_attempt_at = now
        if charge.order_id:
            invoice.razorpay_order_id = charge.order_id
        if not charge.success:
            invoice.last_payment_error = charge.error
            await self.session.commit()
            raise PaymentFailedError(charge.error or "Payment failed")

        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = now
        invoice.last_payment_error = None
        await self.session.commit()
        logger.info("Invoice %s paid by customer %s", invoice.id, customer_id)
        return invoice
