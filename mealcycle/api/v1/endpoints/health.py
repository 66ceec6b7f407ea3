"""Liveness endpoint."""
from __future__ import annotations

from fastapi import APIRouter

from mealcycle.core.config import settings


router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"status": "ok", "version": settings.VERSION, "env": settings.ENV}
