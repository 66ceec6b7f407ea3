"""Delivery order model."""
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from mealcycle.db.base import Base, enum_column, utcnow
from mealcycle.db.models.enums import OrderStatus, Slot


class Order(Base):
    """One meal delivery for a subscription on a service date."""

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    subscription_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("subscriptions.id"), nullable=False
    )
    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("subscription_groups.id"), nullable=False, index=True
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("invoices.id"), nullable=False, index=True
    )
    service_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    slot: Mapped[Slot] = mapped_column(enum_column(Slot), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        enum_column(OrderStatus), nullable=False, default=OrderStatus.SCHEDULED
    )
    status_reason: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "subscription_id", "service_date", "slot", name="uq_order_subscription_date_slot"
        ),
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Order {self.service_date} {self.slot.value} {self.status.value}>"
