"""Pydantic schemas for subscription, invoice and holiday actions."""
import datetime as dt
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mealcycle.db.models.enums import (
    BillingPeriod,
    GroupStatus,
    InvoiceStatus,
    Slot,
)


class GroupRead(BaseModel):
    """Schema returned after a group action."""

    id: UUID
    customer_id: UUID
    vendor_id: UUID
    period: BillingPeriod
    status: GroupStatus
    renewal_date: dt.date
    paused_at: Optional[dt.datetime] = None
    cancelled_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SkipRequest(BaseModel):
    service_date: dt.date = Field(..., description="Date of the meal to skip")


class SkipRead(BaseModel):
    subscription_id: UUID
    service_date: dt.date
    slot: Slot
    order_skipped: bool
    credit_created: bool
    skips_used: int
    skip_limit: int

    model_config = ConfigDict(from_attributes=True)


class InvoiceRead(BaseModel):
    id: UUID
    group_id: UUID
    cycle_start: dt.date
    cycle_end: dt.date
    gross_amount: Decimal
    discount_amount: Decimal
    amount: Decimal
    credits_applied: int
    status: InvoiceStatus
    payment_attempts: int
    paid_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)


class HolidayCreate(BaseModel):
    date: dt.date
    slot: Optional[Slot] = Field(default=None, description="Omit for a whole-day holiday")
    reason: Optional[str] = None


class HolidayRead(BaseModel):
    id: UUID
    vendor_id: UUID
    date: dt.date
    slot: Optional[Slot] = None
    reason: Optional[str] = None
    orders_skipped: int = 0
    credits_issued: int = 0
