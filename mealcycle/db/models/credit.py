"""Meal and monetary credit model."""
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from mealcycle.db.base import Base, enum_column, utcnow
from mealcycle.db.models.enums import CreditReason, CreditStatus, Slot


class Credit(Base):
    """Pre-paid meals (or money) owed back to a customer.

    Subscription credits are consumed by renewals. Customer-level credits
    (``subscription_id`` is NULL) come from auto-cancel conversions.
    """

    __tablename__ = "credits"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    subscription_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("subscriptions.id"), nullable=True, index=True
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    slot: Mapped[Optional[Slot]] = mapped_column(enum_column(Slot), nullable=True)
    reason: Mapped[CreditReason] = mapped_column(enum_column(CreditReason), nullable=False)
    meal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    status: Mapped[CreditStatus] = mapped_column(
        enum_column(CreditStatus), nullable=False, default=CreditStatus.AVAILABLE, index=True
    )
    # NULL never expires
    expires_at: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    consumed_invoice_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("invoices.id"), nullable=True
    )
    consumed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    @property
    def consumed(self) -> bool:
        return self.status == CreditStatus.CONSUMED

    def is_expired(self, as_of: date) -> bool:
        return self.expires_at is not None and as_of > self.expires_at

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Credit {self.id} {self.reason.value} {self.status.value}>"
