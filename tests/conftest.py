"""
Pytest configuration for the application
"""
import datetime as dt
import os
from decimal import Decimal
from typing import AsyncGenerator, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID, uuid4

# Keep the module level engine away from a real server during collection.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URI", "sqlite+aiosqlite:///:memory:")

import httpx
import jwt
import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from mealcycle.api.deps import get_session_factory
from mealcycle.core.config import settings
from mealcycle.db.base import Base
from mealcycle.db.models import (
    Coupon,
    Credit,
    Invoice,
    InvoiceLineItem,
    Order,
    Subscription,
    SubscriptionGroup,
    Vendor,
    VendorHoliday,
    VendorSlotPrice,
)
from mealcycle.db.models.enums import (
    BillingPeriod,
    CreditReason,
    CreditStatus,
    DiscountType,
    GroupStatus,
    InvoiceStatus,
    OrderStatus,
    Slot,
    SubscriptionStatus,
)
from mealcycle.db.session import get_db
from mealcycle.main import create_application
from mealcycle.services import limits as limits_service


settings.ENV = "test"
settings.CRON_SECRET = "test-cron-secret"
settings.JWT_SECRET = "test-jwt-secret"
API_PREFIX = f"{settings.API_PREFIX}/v1"


@pytest_asyncio.fixture
async def test_db_engine():
    """
    Create an in-memory database shared by every session of one test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Session used to seed rows. Commit before running a job or a request.
    """
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def test_app(session_factory) -> AsyncGenerator[FastAPI, None]:
    """
    Create a FastAPI test application bound to the test database.
    """
    app = create_application()

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with LifespanManager(app):
        yield app


@pytest_asyncio.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Create an async HTTP client for testing.
    """
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


class FakeRedis:
    """Minimal async Redis stub for rate limiting and idempotency tests."""

    def __init__(self) -> None:
        self.store: Dict[str, int | str] = {}

    async def incr(self, key: str) -> int:
        current = int(self.store.get(key, 0)) + 1
        self.store[key] = current
        return current

    async def expire(self, key: str, seconds: int) -> None:
        self.store.setdefault(f"{key}:ttl", seconds)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> bool:
        if nx and key in self.store:
            return False
        self.store[key] = value
        if ex is not None:
            self.store[f"{key}:ttl"] = ex
        return True

    async def aclose(self) -> None:
        return None


@pytest.fixture
def fake_redis(monkeypatch) -> FakeRedis:
    """Patch the limits module to use an in-memory Redis stub."""

    fake = FakeRedis()
    monkeypatch.setattr(limits_service, "_redis_client", fake, raising=False)
    yield fake
    monkeypatch.setattr(limits_service, "_redis_client", None, raising=False)


@pytest.fixture
def auth_header():
    def _build(user_id: UUID) -> Dict[str, str]:
        token = jwt.encode({"sub": str(user_id)}, settings.JWT_SECRET, algorithm=settings.JWT_ALG)
        return {"Authorization": f"Bearer {token}"}

    return _build


@pytest.fixture
def cron_header() -> Dict[str, str]:
    return {"Authorization": f"Bearer {settings.CRON_SECRET}"}


@pytest.fixture
def fetch(session_factory):
    """Run a select in a fresh session so reads see what jobs committed."""

    async def _fetch(stmt) -> List:
        async with session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    return _fetch


@pytest.fixture
def reload(session_factory):
    async def _reload(model, ident):
        async with session_factory() as session:
            return await session.get(model, ident)

    return _reload


class Seeder:
    """Creates and commits billing rows for a test."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _save(self, *rows):
        self.session.add_all(rows)
        await self.session.commit()
        return rows

    async def vendor(
        self,
        *,
        prices: Optional[Dict[Slot, Decimal]] = None,
        owner_id: Optional[UUID] = None,
        name: str = "Amma's Kitchen",
    ) -> Vendor:
        vendor = Vendor(id=uuid4(), name=name, owner_id=owner_id or uuid4())
        self.session.add(vendor)
        await self.session.flush()
        for slot, price in (prices or {Slot.LUNCH: Decimal("100.00")}).items():
            self.session.add(
                VendorSlotPrice(vendor_id=vendor.id, slot=slot, price_per_meal=Decimal(price))
            )
        await self.session.commit()
        return vendor

    async def holiday(self, vendor: Vendor, day: dt.date, slot: Optional[Slot] = None) -> VendorHoliday:
        holiday = VendorHoliday(vendor_id=vendor.id, date=day, slot=slot, reason="Festival")
        await self._save(holiday)
        return holiday

    async def coupon(
        self,
        code: str,
        discount_type: DiscountType,
        value: str,
        *,
        min_amount: Optional[str] = None,
        max_discount: Optional[str] = None,
        is_active: bool = True,
    ) -> Coupon:
        coupon = Coupon(
            code=code,
            discount_type=discount_type,
            discount_value=Decimal(value),
            min_amount=Decimal(min_amount) if min_amount else None,
            max_discount=Decimal(max_discount) if max_discount else None,
            is_active=is_active,
        )
        await self._save(coupon)
        return coupon

    async def group(
        self,
        vendor: Vendor,
        *,
        customer_id: Optional[UUID] = None,
        period: BillingPeriod = BillingPeriod.WEEKLY,
        start_date: dt.date = dt.date(2024, 1, 8),
        renewal_date: dt.date = dt.date(2024, 1, 15),
        status: GroupStatus = GroupStatus.ACTIVE,
        coupon: Optional[Coupon] = None,
        paused_at: Optional[dt.datetime] = None,
        slots: Sequence[Tuple[Slot, Iterable[int]]] = ((Slot.LUNCH, (0, 1, 2, 3, 4)),),
        skips_used: int = 0,
        skip_limit: int = 4,
        max_pause_days: int = 30,
    ) -> Tuple[SubscriptionGroup, List[Subscription]]:
        group = SubscriptionGroup(
            id=uuid4(),
            customer_id=customer_id or uuid4(),
            vendor_id=vendor.id,
            period=period,
            status=status,
            start_date=start_date,
            renewal_date=renewal_date,
            coupon_id=coupon.id if coupon else None,
            paused_at=paused_at,
        )
        self.session.add(group)
        await self.session.flush()

        sub_status = SubscriptionStatus(status.value)
        subs = [
            Subscription(
                id=uuid4(),
                group_id=group.id,
                slot=slot,
                weekdays=list(weekdays),
                status=sub_status,
                skips_used=skips_used,
                skip_limit=skip_limit,
                max_pause_days=max_pause_days,
                paused_at=paused_at if sub_status == SubscriptionStatus.PAUSED else None,
            )
            for slot, weekdays in slots
        ]
        await self._save(*subs)
        return group, subs

    async def credit(
        self,
        subscription: Optional[Subscription],
        *,
        customer_id: Optional[UUID] = None,
        slot: Optional[Slot] = Slot.LUNCH,
        meal_count: int = 1,
        expires_at: Optional[dt.date] = dt.date(2024, 4, 1),
        status: CreditStatus = CreditStatus.AVAILABLE,
        reason: CreditReason = CreditReason.CUSTOMER_SKIP,
        amount: Optional[Decimal] = None,
        created_at: Optional[dt.datetime] = None,
    ) -> Credit:
        credit = Credit(
            id=uuid4(),
            subscription_id=subscription.id if subscription else None,
            customer_id=customer_id or uuid4(),
            slot=slot,
            reason=reason,
            meal_count=meal_count,
            amount=amount,
            status=status,
            expires_at=expires_at,
        )
        if created_at is not None:
            credit.created_at = created_at
        await self._save(credit)
        return credit

    async def invoice(
        self,
        group: SubscriptionGroup,
        *,
        cycle_start: dt.date = dt.date(2024, 1, 15),
        cycle_end: dt.date = dt.date(2024, 1, 21),
        amount: str = "500.00",
        status: InvoiceStatus = InvoiceStatus.PENDING,
        payment_attempts: int = 0,
        orders_generated_at: Optional[dt.datetime] = None,
        lines: Sequence[Tuple[Subscription, int, str]] = (),
    ) -> Invoice:
        invoice = Invoice(
            id=uuid4(),
            group_id=group.id,
            cycle_start=cycle_start,
            cycle_end=cycle_end,
            gross_amount=Decimal(amount),
            discount_amount=Decimal("0"),
            amount=Decimal(amount),
            status=status,
            payment_attempts=payment_attempts,
            orders_generated_at=orders_generated_at,
        )
        self.session.add(invoice)
        await self.session.flush()
        items = [
            InvoiceLineItem(
                invoice_id=invoice.id,
                subscription_id=sub.id,
                slot=sub.slot,
                scheduled_meals=scheduled,
                billable_meals=scheduled,
                price_per_meal=Decimal(price),
                amount=Decimal(price) * scheduled,
            )
            for sub, scheduled, price in lines
        ]
        await self._save(*items)
        return invoice

    async def order(
        self,
        subscription: Subscription,
        invoice: Invoice,
        service_date: dt.date,
        status: OrderStatus = OrderStatus.SCHEDULED,
    ) -> Order:
        order = Order(
            id=uuid4(),
            subscription_id=subscription.id,
            group_id=subscription.group_id,
            invoice_id=invoice.id,
            service_date=service_date,
            slot=subscription.slot,
            status=status,
        )
        await self._save(order)
        return order


@pytest.fixture
def seed(test_db) -> Seeder:
    return Seeder(test_db)
