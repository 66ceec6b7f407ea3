"""Scheduler-triggered batch job endpoints."""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mealcycle.api.deps import get_session_factory
from mealcycle.auth.cron import require_cron_secret
from mealcycle.db.base import utcnow
from mealcycle.jobs import (
    AutoCancelJob,
    BatchJob,
    CreditExpiryJob,
    OrderGenerationJob,
    PaymentRetryJob,
    RenewalJob,
)

router = APIRouter(
    prefix="/jobs",
    tags=["jobs"],
    dependencies=[Depends(require_cron_secret)],
)


async def _run(job: BatchJob, cursor: Optional[str]) -> Dict[str, Any] | JSONResponse:
    try:
        result = await job.run(cursor)
    except Exception as exc:
        # the job already recorded the failure on its JobRun row
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": str(exc) or exc.__class__.__name__,
                "timestamp": utcnow().isoformat(),
            },
        )
    return {
        "success": True,
        "timestamp": utcnow().isoformat(),
        "result": result.to_dict(),
    }


@router.api_route("/renewal", methods=["GET", "POST"])
async def run_renewal(
    cursor: Optional[str] = None,
    run_date: Optional[date] = None,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    job = RenewalJob(session_factory, run_date=run_date or utcnow().date())
    return await _run(job, cursor)


@router.api_route("/payment-retry", methods=["GET", "POST"])
async def run_payment_retry(
    cursor: Optional[str] = None,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await _run(PaymentRetryJob(session_factory), cursor)


@router.api_route("/generate-orders", methods=["GET", "POST"])
async def run_order_generation(
    cursor: Optional[str] = None,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await _run(OrderGenerationJob(session_factory), cursor)


@router.get("/auto-cancel-paused")
async def run_auto_cancel(
    cursor: Optional[str] = None,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await _run(AutoCancelJob(session_factory), cursor)


@router.api_route("/expire-credits", methods=["GET", "POST"])
async def run_credit_expiry(
    cursor: Optional[str] = None,
    run_date: Optional[date] = None,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    job = CreditExpiryJob(session_factory, as_of=run_date or utcnow().date())
    return await _run(job, cursor)
