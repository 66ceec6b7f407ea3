from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi import status
from sqlalchemy import select

from mealcycle.core.config import settings
from mealcycle.db.models import Credit, VendorHoliday
from mealcycle.db.models.enums import GroupStatus, InvoiceStatus, Slot
from mealcycle.services import payments as payments_service
from mealcycle.services.payments import ChargeResult

API_PREFIX = f"{settings.API_PREFIX}/v1"
EVERY_DAY = ((Slot.LUNCH, (0, 1, 2, 3, 4, 5, 6)),)


def _future(days: int = 3) -> dt.date:
    return dt.datetime.now(dt.timezone.utc).date() + dt.timedelta(days=days)


@pytest.mark.asyncio
async def test_pause_own_group(client, seed, auth_header, fake_redis):
    vendor = await seed.vendor()
    group, _ = await seed.group(vendor)

    response = await client.post(
        f"{API_PREFIX}/subscription-groups/{group.id}/pause",
        headers=auth_header(group.customer_id),
    )

    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json()["status"] == GroupStatus.PAUSED.value
    assert response.json()["paused_at"] is not None


@pytest.mark.asyncio
async def test_acting_on_someone_elses_group_is_forbidden(client, seed, auth_header, fake_redis):
    vendor = await seed.vendor()
    group, _ = await seed.group(vendor)

    response = await client.post(
        f"{API_PREFIX}/subscription-groups/{group.id}/cancel",
        headers=auth_header(uuid4()),
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {"error": "You do not own this resource"}


@pytest.mark.asyncio
async def test_unknown_group_is_not_found(client, auth_header, fake_redis):
    response = await client.post(
        f"{API_PREFIX}/subscription-groups/{uuid4()}/resume",
        headers=auth_header(uuid4()),
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"error": "Subscription group not found"}


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client):
    response = await client.post(
        f"{API_PREFIX}/subscription-groups/{uuid4()}/pause",
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["message"] == "Invalid token"


@pytest.mark.asyncio
async def test_skip_is_idempotent_per_key(client, seed, auth_header, fake_redis, fetch):
    vendor = await seed.vendor()
    group, (sub,) = await seed.group(vendor, slots=EVERY_DAY)
    headers = auth_header(group.customer_id)
    headers["Idempotency-Key"] = "skip-1"
    payload = {"service_date": _future().isoformat()}

    first = await client.post(f"{API_PREFIX}/subscriptions/{sub.id}/skip", json=payload, headers=headers)
    second = await client.post(f"{API_PREFIX}/subscriptions/{sub.id}/skip", json=payload, headers=headers)

    assert first.status_code == status.HTTP_200_OK, first.text
    assert first.json()["credit_created"] is True
    assert first.json()["skips_used"] == 1
    assert second.status_code == status.HTTP_409_CONFLICT
    assert second.json()["message"] == "Duplicate request (idempotency)"
    assert len(await fetch(select(Credit))) == 1


@pytest.mark.asyncio
async def test_skip_past_meal_is_rejected(client, seed, auth_header, fake_redis):
    vendor = await seed.vendor()
    group, (sub,) = await seed.group(vendor, slots=EVERY_DAY)

    response = await client.post(
        f"{API_PREFIX}/subscriptions/{sub.id}/skip",
        json={"service_date": _future(-1).isoformat()},
        headers=auth_header(group.customer_id),
    )

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json() == {"error": "Only future meals can be skipped"}


@pytest.mark.asyncio
async def test_price_preview(client, seed, auth_header, fake_redis):
    vendor = await seed.vendor(prices={Slot.LUNCH: Decimal("100.00")})

    response = await client.post(
        f"{API_PREFIX}/pricing/preview",
        json={
            "vendor_id": str(vendor.id),
            "period": "weekly",
            "start_date": "2024-01-10",
            "slots": [{"slot": "lunch", "weekdays": [4, 0, 1, 2, 3]}],
        },
        headers=auth_header(uuid4()),
    )

    assert response.status_code == status.HTTP_200_OK, response.text
    body = response.json()
    assert body["cycle_start"] == "2024-01-15"
    assert body["renewal_date"] == "2024-01-22"
    assert Decimal(body["prorated"]["amount"]) == Decimal("300")
    assert Decimal(body["next_cycle"]["amount"]) == Decimal("500")


@pytest.mark.asyncio
async def test_price_preview_rejects_duplicate_slots(client, auth_header, fake_redis):
    slot = {"slot": "lunch", "weekdays": [0]}
    response = await client.post(
        f"{API_PREFIX}/pricing/preview",
        json={
            "vendor_id": str(uuid4()),
            "period": "weekly",
            "start_date": "2024-01-10",
            "slots": [slot, slot],
        },
        headers=auth_header(uuid4()),
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.asyncio
async def test_rate_limit_blocks_second_preview_within_window(
    client, seed, auth_header, fake_redis, monkeypatch
):
    vendor = await seed.vendor()
    monkeypatch.setattr(settings.limits, "rate_limit_rpm", 1)
    headers = auth_header(uuid4())
    payload = {
        "vendor_id": str(vendor.id),
        "period": "monthly",
        "start_date": "2024-01-15",
        "slots": [{"slot": "lunch", "weekdays": [0]}],
    }

    first = await client.post(f"{API_PREFIX}/pricing/preview", json=payload, headers=headers)
    second = await client.post(f"{API_PREFIX}/pricing/preview", json=payload, headers=headers)

    assert first.status_code == status.HTTP_200_OK
    assert second.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert second.json()["message"] == "Rate limit exceeded"


@pytest.mark.asyncio
async def test_vendor_declares_holiday(client, seed, auth_header, fake_redis, fetch):
    vendor = await seed.vendor()
    day = _future(10)

    response = await client.post(
        f"{API_PREFIX}/vendors/{vendor.id}/holidays",
        json={"date": day.isoformat(), "slot": "lunch", "reason": "Family function"},
        headers=auth_header(vendor.owner_id),
    )

    assert response.status_code == status.HTTP_201_CREATED, response.text
    body = response.json()
    assert body["date"] == day.isoformat()
    assert body["slot"] == "lunch"
    assert body["orders_skipped"] == 0
    (holiday,) = await fetch(select(VendorHoliday))
    assert holiday.reason == "Family function"


@pytest.mark.asyncio
async def test_pay_invoice_declined(client, seed, auth_header, fake_redis, monkeypatch):
    class Declining:
        async def charge(self, invoice) -> ChargeResult:
            return ChargeResult(success=False, error="Card declined")

    monkeypatch.setattr(payments_service, "_gateway", Declining())
    vendor = await seed.vendor()
    group, _ = await seed.group(vendor)
    invoice = await seed.invoice(group, status=InvoiceStatus.FAILED, payment_attempts=1)

    response = await client.post(
        f"{API_PREFIX}/invoices/{invoice.id}/pay", headers=auth_header(group.customer_id)
    )

    assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
    assert response.json() == {"error": "Card declined"}
