import os
import sys
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import slotbook.models  # noqa: F401,E402
from slotbook.api.deps.redis import get_redis_client  # noqa: E402
from slotbook.core.database import Base, get_db  # noqa: E402
from slotbook.core.redis import RedisClient  # noqa: E402
from slotbook.main import app  # noqa: E402

TZ_NAME = "Europe/Bucharest"
TZ = ZoneInfo(TZ_NAME)

# Monday 2030-01-07, 08:00 in Bucharest
FIXED_NOW = datetime(2030, 1, 7, 6, 0, tzinfo=timezone.utc)
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
SATURDAY = date(2030, 1, 12)


def local_dt(day: date, hour: int, minute: int = 0) -> datetime:
    """Wall-clock time in the test business timezone as an aware UTC datetime."""
    return datetime.combine(day, time(hour, minute)).replace(tzinfo=TZ).astimezone(
        timezone.utc
    )


def fixed_clock() -> datetime:
    return FIXED_NOW


def upcoming_weekday(weekday: int = 1, weeks_ahead: int = 2) -> date:
    """A date at least ``weeks_ahead`` weeks from today falling on ``weekday``."""
    day = date.today() + timedelta(weeks=weeks_ahead)
    return day + timedelta(days=(weekday - day.weekday()) % 7)


def parse_dt(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def business_headers(business_id: int) -> dict[str, str]:
    return {"X-Business-ID": str(business_id)}


class FakeRedis:
    """In-memory stand-in for the redis.asyncio commands used by slot holds."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def ping(self):
        return True

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        if ex:
            self.ttls[key] = ex
        return True

    async def get(self, key):
        return self.store.get(key)

    async def mget(self, keys):
        return [self.store.get(key) for key in keys]

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
                self.ttls.pop(key, None)
        return removed


TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


@pytest.fixture
async def db(tmp_path):
    """Create a fresh database session for each test."""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)  # Clean slate
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis(fake_redis) -> RedisClient:
    return RedisClient(client=fake_redis)


@pytest.fixture(autouse=True)
def override_dependencies(db: AsyncSession, redis: RedisClient):
    """Point the app at the test database and the in-memory Redis."""

    async def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_redis_client] = lambda: redis
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client():
    """HTTP client bound to the ASGI app."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as http_client:
        yield http_client


# Import all domain fixtures to make them available
pytest_plugins = ["tests.fixtures.booking_fixtures"]
