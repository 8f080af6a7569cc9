"""
Test Configuration
==================

Shared fixtures: an in-memory SQLite database, sessions bound to it and an
HTTP client for the FastAPI app with ``get_db`` overridden.
"""

import os

# Settings are read once at import time
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["CLEANUP_WORKER_ENABLED"] = "false"
os.environ["REVENUECAT_WEBHOOK_AUTH"] = "test-webhook-secret"
os.environ["API_ACCESS_TOKEN"] = "test-api-token"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from revenuecat_mirror.db.base import Base
from revenuecat_mirror.db.session import create_engine_from_url, get_db, make_session_factory
from revenuecat_mirror.main import app
import revenuecat_mirror.models  # noqa: F401


@pytest_asyncio.fixture
async def engine():
    engine = create_engine_from_url("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """
    HTTP client for the app.

    Requests get their own session from the test engine; the lifespan is not
    run, so no real database or Redis is touched.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def webhook_headers() -> dict:
    return {"Authorization": "test-webhook-secret"}


@pytest.fixture
def api_headers() -> dict:
    return {"Authorization": "Bearer test-api-token"}
