"""Renewal job: invoice every group due on the run date and advance its renewal date."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.core.exceptions import DuplicateInvoiceError
from mealcycle.db.models.enums import InvoiceStatus, JobType, SubscriptionStatus
from mealcycle.db.models.invoice import Invoice, InvoiceLineItem
from mealcycle.db.models.subscription_group import SubscriptionGroup
from mealcycle.jobs.base import BatchJob, BatchResult
from mealcycle.repositories.group_repo import GroupRepo
from mealcycle.repositories.invoice_repo import InvoiceRepo
from mealcycle.repositories.paging import PageKey
from mealcycle.repositories.subscription_repo import SubscriptionRepo
from mealcycle.repositories.vendor_repo import CouponRepo, VendorRepo
from mealcycle.services.credits import CreditLedger
from mealcycle.services.cycles import CycleBoundaries, cycle_for_renewal, iter_service_dates
from mealcycle.services.pricing import (
    PricingService,
    count_scheduled,
    holiday_keys,
    quote_group,
    quote_slot,
)

logger = logging.getLogger(__name__)


@dataclass
class RenewalResult(BatchResult):
    invoices_created: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "invoicesCreated": self.invoices_created,
            "skipped": self.skipped,
            "errors": self.errors,
            "hasMore": self.has_more,
            "cursor": self.cursor,
        }


class RenewalJob(BatchJob):
    """Creates one invoice per due group and cycle; rerunning a date is a no-op."""

    job_type = JobType.RENEWAL
    batch_size_setting = "renewal_batch_size"

    def __init__(self, session_factory, run_date: date, **kwargs) -> None:
        super().__init__(session_factory, **kwargs)
        self.run_date = run_date

    def params(self) -> Dict[str, Any]:
        return {"run_date": self.run_date.isoformat()}

    def new_result(self) -> RenewalResult:
        return RenewalResult()

    async def fetch_page(
        self, session: AsyncSession, after: Optional[PageKey], limit: int
    ) -> List[PageKey]:
        return await GroupRepo(session).due_for_renewal(self.run_date, after, limit)

    async def process_item(self, session: AsyncSession, key: PageKey, result: RenewalResult) -> bool:
        groups = GroupRepo(session)
        group = await groups.get_with_subscriptions(key.id, refresh=True)
        if group is None or group.renewal_date != self.run_date:
            return False

        cycle = cycle_for_renewal(group.period, group.renewal_date)
        existing = await InvoiceRepo(session).get_for_cycle(group.id, cycle.cycle_start)
        if existing is not None:
            logger.info(
                "Invoice %s already covers group %s cycle %s, skipping",
                existing.id,
                group.id,
                cycle.cycle_start,
            )
            await groups.set_renewal_date(group.id, cycle.renewal_date)
            await session.commit()
            result.skipped += 1
            return True

        active = [s for s in group.subscriptions if s.status == SubscriptionStatus.ACTIVE]
        if not active:
            logger.info("Group %s has no active subscriptions, advancing only", group.id)
            await groups.set_renewal_date(group.id, cycle.renewal_date)
            await session.commit()
            result.skipped += 1
            return True

        try:
            invoice = await self._bill(session, group, active, cycle)
            await SubscriptionRepo(session).reset_skips(group.id)
            await groups.set_renewal_date(group.id, cycle.renewal_date)
            await session.commit()
        except DuplicateInvoiceError:
            # a concurrent run created the same (group, cycle_start) invoice
            await session.rollback()
            logger.info("Duplicate invoice for group %s cycle %s", key.id, cycle.cycle_start)
            result.skipped += 1
            return True

        result.invoices_created += 1
        logger.info(
            "Invoice %s created for group %s (%s..%s) amount=%s status=%s",
            invoice.id,
            key.id,
            cycle.cycle_start,
            cycle.cycle_end,
            invoice.amount,
            invoice.status.value,
        )
        return True

    async def _bill(
        self,
        session: AsyncSession,
        group: SubscriptionGroup,
        active: list,
        cycle: CycleBoundaries,
    ) -> Invoice:
        """Create the invoice, consume credits and write line items in the open transaction."""

        prices = await PricingService(session).prices_for(group.vendor_id, {s.slot for s in active})
        span_start = max(cycle.cycle_start, group.start_date)
        holidays = holiday_keys(
            await VendorRepo(session).holidays_between(group.vendor_id, span_start, cycle.cycle_end)
        )

        invoice = Invoice(
            group_id=group.id,
            cycle_start=cycle.cycle_start,
            cycle_end=cycle.cycle_end,
            status=InvoiceStatus.PENDING,
        )
        invoices = InvoiceRepo(session)
        await invoices.add(invoice)

        ledger = CreditLedger(session)
        lines = []
        for sub in active:
            dates = list(iter_service_dates(span_start, cycle.cycle_end, sub.weekdays))
            scheduled, _ = count_scheduled(dates, sub.slot, holidays)
            applied = await ledger.apply_credits(
                sub.id, sub.slot, scheduled, self.run_date, invoice.id, now=self.now()
            )
            lines.append(
                quote_slot(
                    slot=sub.slot,
                    price_per_meal=prices[sub.slot],
                    service_dates=dates,
                    holidays=holidays,
                    credits_available=applied,
                    subscription_id=sub.id,
                )
            )

        coupon = None
        if group.coupon_id is not None:
            coupon = await CouponRepo(session).get(group.coupon_id)
            if coupon is not None and not coupon.is_active:
                coupon = None
        quote = quote_group(lines, coupon)

        invoice.gross_amount = quote.gross_amount
        invoice.discount_amount = quote.discount_amount
        invoice.amount = quote.amount
        invoice.credits_applied = quote.credits_applied
        if quote.amount <= 0:
            invoice.status = InvoiceStatus.PAID
            invoice.paid_at = self.now()

        await invoices.add_line_items(
            invoice,
            [
                InvoiceLineItem(
                    subscription_id=line.subscription_id,
                    slot=line.slot,
                    scheduled_meals=line.scheduled_meals,
                    holiday_meals=line.holiday_meals,
                    credits_applied=line.credits_applied,
                    billable_meals=line.billable_meals,
                    price_per_meal=line.price_per_meal,
                    amount=line.amount,
                )
                for line in quote.lines
            ],
        )
        return invoice
