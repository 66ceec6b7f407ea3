"""Keyset paging over ``(created_at, id)``."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import NamedTuple, Optional

from sqlalchemy import Select, and_, or_

from mealcycle.db.base import as_utc


class PageKey(NamedTuple):
    """Position of an item in creation order."""

    created_at: datetime
    id: uuid.UUID

    def encode(self) -> str:
        return f"{as_utc(self.created_at).isoformat()}|{self.id}"

    @classmethod
    def decode(cls, cursor: str) -> "PageKey":
        """Parse ``"<created_at iso>|<uuid>"``; raises ``ValueError`` when malformed."""

        created_raw, sep, id_raw = cursor.partition("|")
        if not sep:
            raise ValueError(f"Malformed cursor: {cursor!r}")
        return cls(as_utc(datetime.fromisoformat(created_raw)), uuid.UUID(id_raw))


def after_key(stmt: Select, model, key: Optional[PageKey], limit: int) -> Select:
    """Restrict ``stmt`` to rows strictly after ``key`` in creation order."""

    if key is not None:
        stmt = stmt.where(
            or_(
                model.created_at > key.created_at,
                and_(model.created_at == key.created_at, model.id > key.id),
            )
        )
    return stmt.order_by(model.created_at, model.id).limit(limit)
