from __future__ import annotations

import json
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest

from mealcycle.db.models import Invoice
from mealcycle.services.payments import HttpPaymentGateway

CHARGE_URL = "https://payments.test/charge"


def _invoice() -> Invoice:
    return Invoice(id=uuid4(), amount=Decimal("500.00"), razorpay_order_id=None)


@pytest.mark.asyncio
async def test_successful_charge_returns_order_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"success": True, "order_id": "order_123"})

    gateway = HttpPaymentGateway(CHARGE_URL, "sk_test", transport=httpx.MockTransport(handler))
    invoice = _invoice()
    result = await gateway.charge(invoice)

    assert result.success
    assert result.order_id == "order_123"
    assert seen["body"]["invoice_id"] == str(invoice.id)
    assert seen["body"]["amount"] == "500.00"
    assert seen["auth"] == "Bearer sk_test"


@pytest.mark.asyncio
async def test_declined_charge_carries_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"success": False, "error": "Card declined"})

    gateway = HttpPaymentGateway(CHARGE_URL, transport=httpx.MockTransport(handler))
    result = await gateway.charge(_invoice())

    assert not result.success
    assert result.error == "Card declined"


@pytest.mark.asyncio
async def test_network_error_is_a_failed_charge():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = HttpPaymentGateway(CHARGE_URL, transport=httpx.MockTransport(handler))
    result = await gateway.charge(_invoice())

    assert not result.success
    assert result.error.startswith("Payment service unreachable")


@pytest.mark.asyncio
async def test_unconfigured_gateway_fails_without_calling_out():
    result = await HttpPaymentGateway(None).charge(_invoice())

    assert not result.success
    assert result.error == "Payment gateway not configured"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", ["Bad Gateway", ["upstream", "down"]], ids=["string", "list"])
async def test_non_object_body_is_a_failed_charge(payload):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json=payload)

    gateway = HttpPaymentGateway(CHARGE_URL, transport=httpx.MockTransport(handler))
    result = await gateway.charge(_invoice())

    assert not result.success
    assert result.error == "Payment declined (HTTP 502)"
    assert result.order_id is None
