"""Vendor calendar endpoints."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.api.deps import get_current_user_id, get_db_session
from mealcycle.schemas.subscriptions import HolidayCreate, HolidayRead
from mealcycle.services.limits import check_rate_limit
from mealcycle.services.subscriptions import SubscriptionService


router = APIRouter(prefix="/vendors", tags=["vendors"])


@router.post(
    "/{vendor_id}/holidays",
    response_model=HolidayRead,
    status_code=status.HTTP_201_CREATED,
)
async def declare_holiday(
    vendor_id: UUID,
    payload: HolidayCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    await check_rate_limit(str(user_id), "vendor")
    outcome = await SubscriptionService(db).declare_holiday(
        vendor_id, user_id, payload.date, payload.slot, payload.reason
    )
    holiday = outcome.holiday
    return HolidayRead(
        id=holiday.id,
        vendor_id=holiday.vendor_id,
        date=holiday.date,
        slot=holiday.slot,
        reason=holiday.reason,
        orders_skipped=outcome.orders_skipped,
        credits_issued=outcome.credits_issued,
    )
