"""Pytest configuration and fixtures for async testing."""
import fnmatch
import os
from datetime import datetime, timedelta
from typing import Any, AsyncGenerator, Optional

# Point the application at SQLite before anything imports ipspay.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import ipspay.models  # noqa: F401  registers tables on Base.metadata
from ipspay.auth.rbac import CallerContext, Role
from ipspay.database import Base
from ipspay.models.plan import SubscriptionPlan
from ipspay.services.ips_qr import IpsQrEncoder

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

SEED_PLANS = [
    ("FREE", "Besplatno", 0, 2),
    ("STARTER", "Starter", 300, 10),
    ("PRO", "Pro", 600, 30),
    ("UNLIMITED", "Unlimited", 1500, 999),
]


class FakeCache:
    """In-memory stand-in for RedisCache with the same async interface."""

    def __init__(self):
        self.store: dict[str, Any] = {}
        self.ttls: dict[str, Optional[int]] = {}
        self.gets = 0

    async def get(self, key: str) -> Optional[Any]:
        self.gets += 1
        return self.store.get(key)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, key: str) -> bool:
        self.ttls.pop(key, None)
        return self.store.pop(key, None) is not None

    async def invalidate_pattern(self, pattern: str) -> int:
        keys = [key for key in self.store if fnmatch.fnmatch(key, pattern)]
        for key in keys:
            await self.delete(key)
        return len(keys)

    async def close(self) -> None:
        self.store.clear()


class FakeClock:
    """Controllable naive-UTC clock; every reading advances one millisecond."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime.utcnow()

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(milliseconds=1)
        return current

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database session for each test.

    Yields:
        AsyncSession: Database session for testing
    """
    # A single shared connection keeps the in-memory database alive for the test
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def seeded_plans(db_session: AsyncSession) -> list[SubscriptionPlan]:
    """The production plan catalog."""
    plans = [
        SubscriptionPlan(
            code=code,
            name=name,
            price_monthly=price,
            credits_per_month=credits,
            active=True,
            display_order=order,
        )
        for order, (code, name, price, credits) in enumerate(SEED_PLANS, start=1)
    ]
    db_session.add_all(plans)
    await db_session.commit()
    return plans


@pytest.fixture
def fake_cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def encoder() -> IpsQrEncoder:
    return IpsQrEncoder.from_settings()


@pytest.fixture
def payer() -> CallerContext:
    return CallerContext(caller_id="u1", role=Role.USER, request_id="req_test")


@pytest.fixture
def other_payer() -> CallerContext:
    return CallerContext(caller_id="u2", role=Role.USER)


@pytest.fixture
def operator() -> CallerContext:
    return CallerContext(caller_id="op1", role=Role.ADMIN, request_id="req_admin")


@pytest.fixture
def current_claims() -> dict[str, str]:
    """Claims returned by the overridden token check; tests mutate it to switch users."""
    return {"sub": "u1", "role": Role.USER.value}


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession,
    fake_cache: FakeCache,
    current_claims: dict,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async HTTP client for testing with database dependency override.

    Yields:
        AsyncClient: Async HTTP client for API testing
    """
    from ipspay.api.deps import get_current_user, get_db
    from ipspay.main import app

    monkeypatch.setattr("ipspay.services.settings_service.default_cache", fake_cache)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_current_user() -> dict:
        return dict(current_claims)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()