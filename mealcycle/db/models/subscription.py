"""Slot subscription model."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealcycle.db.base import Base, enum_column, utcnow
from mealcycle.db.models.enums import Slot, SubscriptionStatus


class Subscription(Base):
    """A (slot, weekday-set) commitment inside a subscription group.

    ``weekdays`` holds ``date.weekday()`` numbers, Monday=0 through Sunday=6.
    Rows are soft-terminated through ``status`` and never deleted.
    """

    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("subscription_groups.id"), nullable=False, index=True
    )
    slot: Mapped[Slot] = mapped_column(enum_column(Slot), nullable=False)
    weekdays: Mapped[List[int]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[SubscriptionStatus] = mapped_column(
        enum_column(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE
    )
    skip_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    skips_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_pause_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    paused_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    group: Mapped["SubscriptionGroup"] = relationship(
        "SubscriptionGroup", back_populates="subscriptions"
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Subscription {self.id} {self.slot.value} {self.status.value}>"
