"""Repository utilities for invoices and their line items."""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.core.exceptions import DuplicateInvoiceError
from mealcycle.db.models.enums import GroupStatus, InvoiceStatus
from mealcycle.db.models.invoice import Invoice, InvoiceLineItem
from mealcycle.db.models.subscription_group import SubscriptionGroup
from mealcycle.repositories.paging import PageKey, after_key

OPEN_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.FAILED)


class InvoiceRepo:
    """Data-access helpers for :class:`Invoice`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, invoice_id: UUID, *, refresh: bool = False) -> Optional[Invoice]:
        stmt = select(Invoice).where(Invoice.id == invoice_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_cycle(self, group_id: UUID, cycle_start: date) -> Optional[Invoice]:
        result = await self.session.execute(
            select(Invoice).where(
                Invoice.group_id == group_id,
                Invoice.cycle_start == cycle_start,
            )
        )
        return result.scalar_one_or_none()

    async def add(self, invoice: Invoice) -> Invoice:
        """Insert ``invoice``; a second invoice for the same group and cycle is refused."""

        self.session.add(invoice)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise DuplicateInvoiceError(
                f"Invoice already exists for group {invoice.group_id} cycle {invoice.cycle_start}"
            ) from exc
        return invoice

    async def add_line_items(self, invoice: Invoice, line_items: Sequence[InvoiceLineItem]) -> None:
        for item in line_items:
            item.invoice_id = invoice.id
            self.session.add(item)
        await self.session.flush()

    async def line_items(self, invoice_id: UUID) -> list[InvoiceLineItem]:
        result = await self.session.execute(
            select(InvoiceLineItem)
            .where(InvoiceLineItem.invoice_id == invoice_id)
            .order_by(InvoiceLineItem.created_at, InvoiceLineItem.id)
        )
        return list(result.scalars().all())

    async def line_prices_for_subscription(self, subscription_id: UUID) -> dict[UUID, Decimal]:
        """Map invoice id to the per-meal price billed for ``subscription_id``."""

        result = await self.session.execute(
            select(InvoiceLineItem.invoice_id, InvoiceLineItem.price_per_meal).where(
                InvoiceLineItem.subscription_id == subscription_id
            )
        )
        return {invoice_id: price for invoice_id, price in result.all()}

    async def paid_lines_awaiting_orders(
        self, subscription_id: UUID
    ) -> list[tuple[Invoice, InvoiceLineItem]]:
        """Paid lines of ``subscription_id`` whose invoice has not been expanded into orders."""

        result = await self.session.execute(
            select(Invoice, InvoiceLineItem)
            .join(InvoiceLineItem, InvoiceLineItem.invoice_id == Invoice.id)
            .where(
                InvoiceLineItem.subscription_id == subscription_id,
                Invoice.status == InvoiceStatus.PAID,
                Invoice.orders_generated_at.is_(None),
            )
            .order_by(Invoice.cycle_start)
        )
        return [(invoice, line) for invoice, line in result.all()]

    async def retryable_page(
        self, max_attempts: int, after: Optional[PageKey], limit: int
    ) -> list[PageKey]:
        stmt = (
            select(Invoice.created_at, Invoice.id)
            .join(SubscriptionGroup, SubscriptionGroup.id == Invoice.group_id)
            .where(
                Invoice.status.in_(OPEN_STATUSES),
                Invoice.amount > 0,
                Invoice.payment_attempts < max_attempts,
                SubscriptionGroup.status != GroupStatus.CANCELLED,
            )
        )
        result = await self.session.execute(after_key(stmt, Invoice, after, limit))
        return [PageKey(*row) for row in result.all()]

    async def void_open_for_group(self, group_id: UUID) -> int:
        """Take a group's unpaid invoices out of collection; returns how many changed."""

        result = await self.session.execute(
            update(Invoice)
            .where(Invoice.group_id == group_id, Invoice.status.in_(OPEN_STATUSES))
            .values(status=InvoiceStatus.VOID)
        )
        return result.rowcount

    async def awaiting_orders_page(self, after: Optional[PageKey], limit: int) -> list[PageKey]:
        stmt = select(Invoice.created_at, Invoice.id).where(
            Invoice.status == InvoiceStatus.PAID,
            Invoice.orders_generated_at.is_(None),
        )
        result = await self.session.execute(after_key(stmt, Invoice, after, limit))
        return [PageKey(*row) for row in result.all()]
