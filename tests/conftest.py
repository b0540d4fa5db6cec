import os
import itertools
from datetime import datetime, date
from decimal import Decimal

# Settings are read at import time; point them at a throwaway database first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.main import create_app
from app.api.deps import get_db
from app.security import create_access_token
from app.models.user import User
from app.models.plan import Plan
from app.models.subscription import Subscription
from app.models.notification import Notification  # noqa: F401 - registers the table
from app.models.discount import Discount, DiscountUsage
from app.models.usage_record import UsageRecord


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client whose requests each get their own session on the test database."""
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    async def _make_user(role="user", is_active=True, username=None, email=None,
                         created_at=None, hashed_password="not-a-real-hash"):
        n = next(counter)
        user = User(
            username=username or f"{role}{n}",
            email=email or f"{role}{n}@example.com",
            hashed_password=hashed_password,
            role=role,
            is_active=is_active,
            created_at=created_at or datetime(2026, 1, 1, 12, 0, n),
        )
        db.add(user)
        await db.commit()
        return user

    return _make_user


@pytest.fixture
def make_plan(db):
    async def _make_plan(name, price=10, billing_cycle="monthly", product_type="internet"):
        plan = Plan(
            name=name,
            product_type=product_type,
            price=Decimal(str(price)),
            billing_cycle=billing_cycle,
        )
        db.add(plan)
        await db.commit()
        return plan

    return _make_plan


@pytest.fixture
def make_subscription(db):
    async def _make_subscription(user, plan, status="active", created_at=None):
        subscription = Subscription(
            user_id=user.id,
            plan_id=plan.id,
            status=status,
            start_date=created_at,
            created_at=created_at or datetime(2026, 1, 15),
        )
        db.add(subscription)
        await db.commit()
        return subscription

    return _make_subscription


@pytest.fixture
def make_discount(db):
    async def _make_discount(code="SAVE10", name="Save 10%", type="percentage", value=10,
                             is_active=True, end_date=None):
        discount = Discount(
            code=code,
            name=name,
            type=type,
            value=Decimal(str(value)),
            is_active=is_active,
            end_date=end_date,
        )
        db.add(discount)
        await db.commit()
        return discount

    return _make_discount


@pytest.fixture
def make_discount_usage(db):
    async def _make_discount_usage(user, code, amount_before, discount_amount, applied_at):
        usage = DiscountUsage(
            user_id=user.id if user else None,
            code=code,
            amount_before=Decimal(str(amount_before)),
            discount_amount=Decimal(str(discount_amount)),
            amount_after=Decimal(str(amount_before - discount_amount)),
            applied_at=applied_at,
        )
        db.add(usage)
        await db.commit()
        return usage

    return _make_discount_usage


@pytest.fixture
def make_usage(db):
    async def _make_usage(user, day: date, data_used, average_speed=50.0, peak_speed=100.0):
        record = UsageRecord(
            user_id=user.id,
            date=day,
            data_used=data_used,
            average_speed=average_speed,
            peak_speed=peak_speed,
        )
        db.add(record)
        await db.commit()
        return record

    return _make_usage


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token({"sub": str(user.id), "role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
