"""Interactive price preview."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.api.deps import get_current_user_id, get_db_session
from mealcycle.schemas.pricing import PreviewRequest, PreviewResponse
from mealcycle.services.limits import check_rate_limit
from mealcycle.services.pricing import PricingService, SlotSelection


router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/preview", response_model=PreviewResponse)
async def preview_pricing(
    payload: PreviewRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    await check_rate_limit(str(user_id), "pricing")

    preview = await PricingService(db).preview(
        payload.vendor_id,
        payload.period,
        payload.start_date,
        [SlotSelection(slot=s.slot, weekdays=s.weekdays) for s in payload.slots],
        coupon_code=payload.coupon_code,
    )
    return PreviewResponse.model_validate(preview)
