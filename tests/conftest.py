"""Pytest configuration and fixtures.

Settings are read when ``lekha`` is first imported, so the environment is
prepared before anything from the package is loaded.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_KEY", "test-signing-key-that-is-long-enough-for-hs256")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("COOKIE_SECURE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import uuid
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel.ext.asyncio.session import AsyncSession

from lekha import app
from lekha.db.main import get_Session, init_db
from lekha.ledger.dependencies import get_ledger_store
from lekha.ledger.memory_store import InMemoryLedgerStore
from lekha.ledger.sql_store import SqlLedgerStore
from lekha.reminders.routes import get_reminder_generator
from lekha.utils.auth import get_current_user


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the auth flows."""

    def __init__(self):
        self.values = {}
        self.ttls = {}

    async def setex(self, name, time, value):
        self.values[name] = value
        self.ttls[name] = time

    async def get(self, name):
        return self.values.get(name)

    async def delete(self, *names):
        removed = 0
        for name in names:
            if self.values.pop(name, None) is not None:
                removed += 1
            self.ttls.pop(name, None)
        return removed

    async def incr(self, name):
        self.values[name] = int(self.values.get(name, 0)) + 1
        return self.values[name]

    async def expire(self, name, time):
        self.ttls[name] = time
        return True


class FakeReminderGenerator:

    def __init__(self, text="Your payment is due."):
        self.text = text
        self.calls = []

    async def generate(self, customer_name, outstanding_amount, business_name):
        self.calls.append(
            {
                "customer_name": customer_name,
                "outstanding_amount": outstanding_amount,
                "business_name": business_name,
            }
        )
        return self.text


def make_engine():
    return create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def other_owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
async def engine():
    engine = make_engine()
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def sql_store(session) -> SqlLedgerStore:
    return SqlLedgerStore(session)


@pytest.fixture
def memory_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture(params=["memory", "sql"])
async def store(request):
    """Each contract test runs against both ledger stores."""
    if request.param == "memory":
        yield InMemoryLedgerStore()
        return

    engine = make_engine()
    await init_db(engine)
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield SqlLedgerStore(session)
    await engine.dispose()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def reminder_generator() -> FakeReminderGenerator:
    return FakeReminderGenerator(
        "Priya Sharma, an amount of ₹3,000.00 is pending with Sharma Stores. Kindly clear it soon."
    )


@pytest.fixture
def current_owner(owner_id):
    """Mutable identity used by the overridden auth dependency."""
    return {"owner_id": owner_id, "mobile": "9000000001"}


@pytest.fixture
async def client(memory_store, engine, current_owner, reminder_generator):
    async def override_session():
        async with AsyncSession(engine, expire_on_commit=False) as session:
            yield session

    app.dependency_overrides[get_ledger_store] = lambda: memory_store
    app.dependency_overrides[get_Session] = override_session
    app.dependency_overrides[get_current_user] = lambda: dict(current_owner)
    app.dependency_overrides[get_reminder_generator] = lambda: reminder_generator

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))
