"""Payment collaborator adapter.

The gateway wire protocol is not modelled here: the adapter posts a charge
request to a configured endpoint and reduces the answer to ``ChargeResult``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from mealcycle.core.config import settings
from mealcycle.db.models.invoice import Invoice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeResult:
    success: bool
    error: Optional[str] = None
    order_id: Optional[str] = None


class PaymentGateway(Protocol):
    async def charge(self, invoice: Invoice) -> ChargeResult:  # pragma: no cover - protocol
        ...


class HttpPaymentGateway:
    """Charges invoices through an HTTP payment service."""

    def __init__(
        self,
        charge_url: Optional[str],
        api_key: Optional[str] = None,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.charge_url = charge_url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def charge(self, invoice: Invoice) -> ChargeResult:
        if not self.charge_url:
            return ChargeResult(success=False, error="Payment gateway not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {
            "invoice_id": str(invoice.id),
            "amount": str(invoice.amount),
            "currency": settings.billing.currency,
            "order_id": invoice.razorpay_order_id,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.charge_url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Charge request for invoice %s failed: %s", invoice.id, exc)
            return ChargeResult(success=False, error=f"Payment service unreachable: {exc}")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            # e.g. a proxy error page encoded as a JSON string
            data = {}

        if response.status_code >= 400 or not data.get("success"):
            error = data.get("error") or f"Payment declined (HTTP {response.status_code})"
            return ChargeResult(success=False, error=str(error), order_id=data.get("order_id"))
        return ChargeResult(success=True, order_id=data.get("order_id"))


_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Return the process-wide gateway built from settings."""

    global _gateway
    if _gateway is None:
        api_key = settings.payments.api_key
        _gateway = HttpPaymentGateway(
            settings.payments.charge_url,
            api_key.get_secret_value() if api_key else None,
            timeout=settings.payments.timeout_seconds,
        )
    return _gateway
