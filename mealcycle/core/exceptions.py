"""Custom exception types for the billing domain and API layers."""
from __future__ import annotations

from fastapi import status


class AppError(Exception):
    """Base app exception rendered as ``{"error": message}``."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or "Application error")

    @property
    def message(self) -> str:
        return str(self)


class UnauthorizedError(AppError):
    """Unauthorized"""

    status_code = status.HTTP_401_UNAUTHORIZED


class CronSecretNotConfiguredError(AppError):
    """Cron secret not configured"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class NotFoundError(AppError):
    """Resource not found"""

    status_code = status.HTTP_404_NOT_FOUND


class PriceNotFoundError(NotFoundError):
    """Vendor has no enabled price for a slot."""

    def __init__(self, vendor_id, slot) -> None:
        self.vendor_id = vendor_id
        self.slot = slot
        super().__init__(f"No enabled price for vendor {vendor_id}, slot {slot}")


class OwnershipError(AppError):
    """You do not own this resource"""

    status_code = status.HTTP_403_FORBIDDEN


class InvalidActionError(AppError):
    """Action not allowed in the current state"""

    status_code = status.HTTP_409_CONFLICT


class DuplicateInvoiceError(AppError):
    """An invoice already exists for this group and cycle."""

    status_code = status.HTTP_409_CONFLICT


class PaymentFailedError(AppError):
    """Payment failed"""

    status_code = status.HTTP_402_PAYMENT_REQUIRED
