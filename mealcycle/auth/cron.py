"""Shared-secret bearer check for scheduler-triggered job endpoints."""
from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import Header

from mealcycle.core.config import settings
from mealcycle.core.exceptions import CronSecretNotConfiguredError, UnauthorizedError

logger = logging.getLogger(__name__)


def require_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    secret = settings.CRON_SECRET
    if not secret:
        logger.error("CRON_SECRET is not configured, refusing job invocation")
        raise CronSecretNotConfiguredError()

    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        logger.warning("Rejected job invocation with a missing or invalid secret")
        raise UnauthorizedError()
