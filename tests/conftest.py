"""
Shared test fixtures.

Every test gets its own SQLite file so state never leaks between tests.
Tables are created with a sync engine; the app under test talks to the
same file through an aiosqlite engine built by the production adapter.
FastAPI dependencies are overridden instead of mutating process settings.
"""

from typing import AsyncGenerator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from linkgate.api.dependencies import get_session_maker, get_settings
from linkgate.core.rate_limit import limiter as route_limiter
from linkgate.core.security import create_session_token
from linkgate.core.service_manager import get_issuance_limiter
from linkgate.core.setting import Settings
from linkgate.db import models  # noqa: F401
from linkgate.db.session import get_session, make_session_maker
from linkgate.db.sqlite_adapter import SQLiteAdapter
from linkgate.main import app as fastapi_app
from linkgate.services.issuance_limiter import IssuanceLimiter

TEST_CHALLENGE_SECRET = "test-challenge-secret"
TEST_AUTH_SECRET = "test-auth-secret"


def make_settings(**overrides) -> Settings:
    values = dict(
        DATABASE_URL="sqlite+aiosqlite://",
        CHALLENGE_SECRET=TEST_CHALLENGE_SECRET,
        CHALLENGE_TTL_SECONDS=300,
        ROTATION_INTERVAL_SECONDS=30,
        CHALLENGE_DIFFICULTY=2,
        TIMING_TOLERANCE_SECONDS=60,
        MIN_SOLVE_MS=0,
        CHALLENGE_RATE_LIMIT="10/minute",
        RATE_LIMIT_STORAGE_URI="memory://",
        CAPTCHA_API_URL=None,
        CAPTCHA_ADMIN_KEY=None,
        AUTH_SECRET=TEST_AUTH_SECRET,
        JWT_ALGORITHM="HS256",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "linkgate-test.db")


@pytest.fixture
def sync_engine(db_path) -> Engine:
    """Sync engine on the test database, used to create tables and inspect rows."""
    engine = create_engine(f"sqlite:///{db_path}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_maker(db_path, sync_engine) -> async_sessionmaker:
    engine = SQLiteAdapter().create_engine(f"sqlite+aiosqlite:///{db_path}")
    return make_session_maker(engine)


@pytest.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def issuance_limiter() -> IssuanceLimiter:
    return IssuanceLimiter(limit="10/minute", storage_uri="memory://")


@pytest.fixture(autouse=True)
def reset_route_limits():
    """slowapi counters are process-wide; start every test from zero."""
    route_limiter.reset()
    yield


@pytest.fixture
def app(session_maker, issuance_limiter, test_settings):
    async def _get_session_override():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_session] = _get_session_override
    fastapi_app.dependency_overrides[get_session_maker] = lambda: session_maker
    fastapi_app.dependency_overrides[get_issuance_limiter] = lambda: issuance_limiter
    fastapi_app.dependency_overrides[get_settings] = lambda: test_settings
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    # Not used as a context manager: startup would create the production database
    return TestClient(app)


@pytest.fixture
def admin_token() -> str:
    return create_session_token("admin@example.com", "admin", TEST_AUTH_SECRET)


@pytest.fixture
def user_token() -> str:
    return create_session_token("user@example.com", "user", TEST_AUTH_SECRET)
