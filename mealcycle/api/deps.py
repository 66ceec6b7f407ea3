"""Shared FastAPI dependencies."""
from __future__ import annotations

from typing import AsyncGenerator
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mealcycle.auth.jwt import require_auth
from mealcycle.db.session import SessionLocal, get_db


async def get_db_session(
    session: AsyncSession = Depends(get_db),
) -> AsyncGenerator[AsyncSession, None]:
    yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for jobs, which open their own per-item transactions."""

    return SessionLocal


def get_current_user_id(auth=Depends(require_auth)) -> UUID:
    return auth["user_id"]
