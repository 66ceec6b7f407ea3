"""Pydantic schemas for price previews."""
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mealcycle.db.models.enums import BillingPeriod, Slot


class SlotSelectionIn(BaseModel):
    slot: Slot
    weekdays: List[int] = Field(..., min_length=1, description="Weekdays, Monday=0 to Sunday=6")

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, value: List[int]) -> List[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("weekdays must be between 0 (Monday) and 6 (Sunday)")
        return sorted(set(value))


class PreviewRequest(BaseModel):
    """Schema for pricing a subscription before it is created."""

    vendor_id: UUID
    period: BillingPeriod
    start_date: date
    slots: List[SlotSelectionIn] = Field(..., min_length=1)
    coupon_code: Optional[str] = None

    @field_validator("slots")
    @classmethod
    def validate_unique_slots(cls, value: List[SlotSelectionIn]) -> List[SlotSelectionIn]:
        if len({item.slot for item in value}) != len(value):
            raise ValueError("each slot may only be selected once")
        return value


class SlotQuoteRead(BaseModel):
    slot: Slot
    price_per_meal: Decimal
    scheduled_meals: int
    holiday_meals: int
    credits_applied: int
    billable_meals: int
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class GroupQuoteRead(BaseModel):
    lines: List[SlotQuoteRead]
    gross_amount: Decimal
    discount_amount: Decimal
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PreviewResponse(BaseModel):
    """Prorated first stretch plus the first full cycle."""

    vendor_id: UUID
    period: BillingPeriod
    start_date: date
    prorated_start: Optional[date] = None
    prorated_end: Optional[date] = None
    prorated: Optional[GroupQuoteRead] = None
    cycle_start: date
    cycle_end: date
    renewal_date: date
    next_cycle: GroupQuoteRead

    model_config = ConfigDict(from_attributes=True)
