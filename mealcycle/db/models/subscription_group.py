"""Subscription group model: one customer and vendor billed together."""
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import Date, DateTime, ForeignKey, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealcycle.db.base import Base, enum_column, utcnow
from mealcycle.db.models.enums import BillingPeriod, GroupStatus


class SubscriptionGroup(Base):
    """Bundles slot subscriptions sharing one billing period and renewal date."""

    __tablename__ = "subscription_groups"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("vendors.id"), nullable=False, index=True
    )
    period: Mapped[BillingPeriod] = mapped_column(enum_column(BillingPeriod), nullable=False)
    status: Mapped[GroupStatus] = mapped_column(
        enum_column(GroupStatus), nullable=False, default=GroupStatus.ACTIVE
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    renewal_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    coupon_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("coupons.id"), nullable=True
    )
    paused_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    subscriptions: Mapped[List["Subscription"]] = relationship(
        "Subscription", back_populates="group", order_by="Subscription.created_at"
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<SubscriptionGroup {self.id} {self.period.value} renews={self.renewal_date}>"
