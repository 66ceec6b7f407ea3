"""Payment retry job: charge pending or failed invoices with a bounded attempt count."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.core.config import settings
from mealcycle.db.models.enums import GroupStatus, InvoiceStatus, JobType, SubscriptionStatus
from mealcycle.db.models.invoice import Invoice
from mealcycle.jobs.base import BatchJob, BatchResult
from mealcycle.repositories.group_repo import GroupRepo
from mealcycle.repositories.invoice_repo import InvoiceRepo
from mealcycle.repositories.paging import PageKey
from mealcycle.services.payments import ChargeResult, PaymentGateway, get_payment_gateway

logger = logging.getLogger(__name__)


@dataclass
class PaymentRetryResult(BatchResult):
    retried: int = 0
    paid: int = 0
    paused: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "retried": self.retried,
            "paid": self.paid,
            "paused": self.paused,
            "errors": self.errors,
            "hasMore": self.has_more,
            "cursor": self.cursor,
        }


class PaymentRetryJob(BatchJob):
    """Charges each eligible invoice once per run.

    Failures, including a collaborator that raises, are persisted on the
    invoice so the attempt counter survives between invocations. Reaching
    ``max_attempts`` pauses the group. Invoices of cancelled groups are
    never charged.
    """

    job_type = JobType.PAYMENT_RETRY
    batch_size_setting = "payment_retry_batch_size"

    def __init__(
        self,
        session_factory,
        gateway: Optional[PaymentGateway] = None,
        max_attempts: Optional[int] = None,
        **kwargs,
    ) -> None:
        super().__init__(session_factory, **kwargs)
        self.gateway = gateway or get_payment_gateway()
        self.max_attempts = max_attempts or settings.jobs.max_payment_attempts

    def params(self) -> Dict[str, Any]:
        return {"max_attempts": self.max_attempts}

    def new_result(self) -> PaymentRetryResult:
        return PaymentRetryResult()

    async def fetch_page(
        self, session: AsyncSession, after: Optional[PageKey], limit: int
    ) -> List[PageKey]:
        return await InvoiceRepo(session).retryable_page(self.max_attempts, after, limit)

    async def process_item(
        self, session: AsyncSession, key: PageKey, result: PaymentRetryResult
    ) -> bool:
        invoice = await InvoiceRepo(session).get(key.id, refresh=True)
        if invoice is None or invoice.status not in (InvoiceStatus.PENDING, InvoiceStatus.FAILED):
            return False
        if invoice.payment_attempts >= self.max_attempts:
            return False

        result.retried += 1
        try:
            charge = await self.gateway.charge(invoice)
        except Exception as exc:
            # a raising collaborator is a failed attempt
            logger.exception("Charging invoice %s raised", invoice.id)
            result.record_error(invoice.id, exc)
            charge = ChargeResult(success=False, error=str(exc) or exc.__class__.__name__)
        now = self.now()
        invoice.last_attempt_at = now

        if charge.success:
            self._mark_paid(invoice, charge, now)
            await session.commit()
            result.paid += 1
            logger.info("Invoice %s paid on retry", invoice.id)
            return True

        invoice.payment_attempts += 1
        invoice.status = InvoiceStatus.FAILED
        invoice.last_payment_error = charge.error
        if charge.order_id:
            invoice.razorpay_order_id = charge.order_id
        logger.warning(
            "Invoice %s payment attempt %d/%d failed: %s",
            invoice.id,
            invoice.payment_attempts,
            self.max_attempts,
            charge.error,
        )

        if invoice.payment_attempts >= self.max_attempts:
            await self._pause_group(session, invoice, now)
            result.paused += 1
        await session.commit()
        return True

    @staticmethod
    def _mark_paid(invoice: Invoice, charge: ChargeResult, now) -> None:
        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = now
        invoice.last_payment_error = None
        if charge.order_id:
            invoice.razorpay_order_id = charge.order_id

    async def _pause_group(self, session: AsyncSession, invoice: Invoice, now) -> None:
        group = await GroupRepo(session).get_with_subscriptions(invoice.group_id, refresh=True)
        if group is None:
            return
        if group.status == GroupStatus.ACTIVE:
            group.status = GroupStatus.PAUSED
            group.paused_at = now
        for sub in group.subscriptions:
            if sub.status == SubscriptionStatus.ACTIVE:
                sub.status = SubscriptionStatus.PAUSED
                sub.paused_at = now
        logger.warning(
            "Group %s paused after %d failed payment attempts on invoice %s",
            group.id,
            invoice.payment_attempts,
            invoice.id,
        )
