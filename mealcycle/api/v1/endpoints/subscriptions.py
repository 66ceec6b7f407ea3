"""Customer actions on subscription groups and slot subscriptions."""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from mealcycle.api.deps import get_current_user_id, get_db_session
from mealcycle.schemas.subscriptions import GroupRead, SkipRead, SkipRequest
from mealcycle.services.limits import check_rate_limit, ensure_idempotent
from mealcycle.services.subscriptions import SubscriptionService


router = APIRouter(tags=["subscriptions"])


@router.post("/subscription-groups/{group_id}/pause", response_model=GroupRead)
async def pause_group(
    group_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    await check_rate_limit(str(user_id), "subscription")
    group = await SubscriptionService(db).pause_group(group_id, user_id)
    return GroupRead.model_validate(group)


@router.post("/subscription-groups/{group_id}/resume", response_model=GroupRead)
async def resume_group(
    group_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    await check_rate_limit(str(user_id), "subscription")
    group = await SubscriptionService(db).resume_group(group_id, user_id)
    return GroupRead.model_validate(group)


@router.post("/subscription-groups/{group_id}/cancel", response_model=GroupRead)
async def cancel_group(
    group_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    await check_rate_limit(str(user_id), "subscription")
    group = await SubscriptionService(db).cancel_group(group_id, user_id)
    return GroupRead.model_validate(group)


@router.post("/subscriptions/{subscription_id}/skip", response_model=SkipRead)
async def skip_meal(
    subscription_id: UUID,
    payload: SkipRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    await check_rate_limit(str(user_id), "subscription")
    await ensure_idempotent(str(user_id), idempotency_key)
    outcome = await SubscriptionService(db).skip_meal(
        subscription_id, user_id, payload.service_date
    )
    return SkipRead.model_validate(outcome)
