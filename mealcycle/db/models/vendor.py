"""Vendor, per-slot pricing and declared holidays."""
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from mealcycle.db.base import Base, enum_column, utcnow
from mealcycle.db.models.enums import Slot


class Vendor(Base):
    """A home-chef or kitchen selling meal subscriptions."""

    __tablename__ = "vendors"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Vendor {self.id} {self.name!r}>"


class VendorSlotPrice(Base):
    """Per-meal price a vendor charges for one slot."""

    __tablename__ = "vendor_slot_prices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("vendors.id"), nullable=False, index=True
    )
    slot: Mapped[Slot] = mapped_column(enum_column(Slot), nullable=False)
    price_per_meal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("vendor_id", "slot", name="uq_vendor_slot_price"),
    )


class VendorHoliday(Base):
    """A day (or a single slot of a day) the vendor does not deliver."""

    __tablename__ = "vendor_holidays"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("vendors.id"), nullable=False, index=True
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    # NULL covers every slot of the day
    slot: Mapped[Optional[Slot]] = mapped_column(enum_column(Slot), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("vendor_id", "date", "slot", name="uq_vendor_holiday"),
    )

    def covers(self, slot: Slot) -> bool:
        return self.slot is None or self.slot == slot
