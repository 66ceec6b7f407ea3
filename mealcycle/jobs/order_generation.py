"""Order generation job: expand paid invoices into scheduled delivery orders.

Cancelled subscriptions get no new orders even when their invoice was paid.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.db.models.enums import InvoiceStatus, JobType, OrderStatus, SubscriptionStatus
from mealcycle.db.models.order import Order
from mealcycle.jobs.base import BatchJob, BatchResult
from mealcycle.repositories.group_repo import GroupRepo
from mealcycle.repositories.invoice_repo import InvoiceRepo
from mealcycle.repositories.order_repo import OrderRepo
from mealcycle.repositories.paging import PageKey
from mealcycle.repositories.vendor_repo import VendorRepo
from mealcycle.services.cycles import iter_service_dates
from mealcycle.services.pricing import holiday_keys, is_holiday

logger = logging.getLogger(__name__)


@dataclass
class OrderGenerationResult(BatchResult):
    orders_created: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "ordersCreated": self.orders_created,
            "skipped": self.skipped,
            "errors": self.errors,
            "hasMore": self.has_more,
            "cursor": self.cursor,
        }


class OrderGenerationJob(BatchJob):
    job_type = JobType.ORDER_GENERATION
    batch_size_setting = "order_generation_batch_size"

    def new_result(self) -> OrderGenerationResult:
        return OrderGenerationResult()

    async def fetch_page(
        self, session: AsyncSession, after: Optional[PageKey], limit: int
    ) -> List[PageKey]:
        return await InvoiceRepo(session).awaiting_orders_page(after, limit)

    async def process_item(
        self, session: AsyncSession, key: PageKey, result: OrderGenerationResult
    ) -> bool:
        invoices = InvoiceRepo(session)
        invoice = await invoices.get(key.id, refresh=True)
        if (
            invoice is None
            or invoice.status != InvoiceStatus.PAID
            or invoice.orders_generated_at is not None
        ):
            return False

        group = await GroupRepo(session).get_with_subscriptions(invoice.group_id, refresh=True)
        line_items = await invoices.line_items(invoice.id)
        billed = {item.subscription_id for item in line_items if item.scheduled_meals > 0}
        subscriptions = [
            s
            for s in group.subscriptions
            if s.id in billed and s.status != SubscriptionStatus.CANCELLED
        ]

        span_start = max(invoice.cycle_start, group.start_date)
        holidays = holiday_keys(
            await VendorRepo(session).holidays_between(group.vendor_id, span_start, invoice.cycle_end)
        )
        orders = OrderRepo(session)
        existing = await orders.existing_keys(
            [s.id for s in subscriptions], span_start, invoice.cycle_end
        )

        new_orders = []
        for sub in subscriptions:
            for day in iter_service_dates(span_start, invoice.cycle_end, sub.weekdays):
                if is_holiday(holidays, day, sub.slot):
                    continue
                if (sub.id, day, sub.slot) in existing:
                    result.skipped += 1
                    continue
                new_orders.append(
                    Order(
                        subscription_id=sub.id,
                        group_id=group.id,
                        invoice_id=invoice.id,
                        service_date=day,
                        slot=sub.slot,
                        status=OrderStatus.SCHEDULED,
                    )
                )

        created = await orders.add_many(new_orders)
        invoice.orders_generated_at = self.now()
        await session.commit()
        result.orders_created += created
        logger.info(
            "Generated %d order(s) for invoice %s (%s..%s)",
            created,
            invoice.id,
            invoice.cycle_start,
            invoice.cycle_end,
        )
        return True
