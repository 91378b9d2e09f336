"""
Shared fixtures: an in-memory SQLite database and an API client wired to it.
"""

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from linkrotator.core.limiter_manager import get_rate_limiter
from linkrotator.core.rate_limit import limiter
from linkrotator.db import models  # noqa: F401  registers tables
from linkrotator.db.session import get_session
from linkrotator.db.sqlite_adapter import SQLiteAdapter
from linkrotator.main import app
from linkrotator.services.counter_store import InMemoryCounterStore
from linkrotator.services.rate_limiter import RateLimiter

REDIRECT_LIMIT = 3


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def db_engine():
    engine = SQLiteAdapter().create_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=SQLModelAsyncSession, expire_on_commit=False)


@pytest.fixture
def redirect_limiter():
    return RateLimiter(InMemoryCounterStore(), window_seconds=10, max_requests=REDIRECT_LIMIT)


@pytest_asyncio.fixture
async def client(session_maker, redirect_limiter):
    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_rate_limiter] = lambda: redirect_limiter
    limiter.enabled = False

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    limiter.enabled = True
