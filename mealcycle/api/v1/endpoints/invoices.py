"""Customer-initiated invoice payment."""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.api.deps import get_current_user_id, get_db_session
from mealcycle.schemas.subscriptions import InvoiceRead
from mealcycle.services.limits import check_rate_limit, ensure_idempotent
from mealcycle.services.subscriptions import SubscriptionService


router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post("/{invoice_id}/pay", response_model=InvoiceRead)
async def pay_invoice(
    invoice_id: UUID,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    await check_rate_limit(str(user_id), "payment")
    await ensure_idempotent(str(user_id), idempotency_key)
    invoice = await SubscriptionService(db).pay_invoice(invoice_id, user_id)
    return InvoiceRead.model_validate(invoice)
