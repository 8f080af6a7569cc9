"""
Rate Limiter Tests
==================

Sliding window admission backed by the ``rate_limits`` table.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from revenuecat_mirror.core.rate_limit import RateLimiter
from revenuecat_mirror.models import RateLimitCounter

NOW = 1_760_000_000_000
WINDOW_MS = 60_000


@pytest.mark.asyncio
async def test_admits_up_to_capacity(db):
    limiter = RateLimiter(db, max_requests=3, window_ms=WINDOW_MS)

    results = [await limiter.check("webhook:app", NOW + i) for i in range(3)]

    assert [r.allowed for r in results] == [True, True, True]
    assert [r.remaining for r in results] == [2, 1, 0]


@pytest.mark.asyncio
async def test_rejects_over_capacity_without_recording(db):
    limiter = RateLimiter(db, max_requests=2, window_ms=WINDOW_MS)
    await limiter.check("webhook:app", NOW)
    await limiter.check("webhook:app", NOW + 10)

    result = await limiter.check("webhook:app", NOW + 20)

    assert not result.allowed
    assert result.remaining == 0
    assert result.reset_at_ms == NOW + WINDOW_MS

    count = await db.scalar(select(func.count(RateLimitCounter.id)))
    assert count == 2


@pytest.mark.asyncio
async def test_window_slides(db):
    limiter = RateLimiter(db, max_requests=1, window_ms=WINDOW_MS)
    assert (await limiter.check("webhook:app", NOW)).allowed
    assert not (await limiter.check("webhook:app", NOW + WINDOW_MS - 1)).allowed

    # The first request has left the window
    assert (await limiter.check("webhook:app", NOW + WINDOW_MS + 1)).allowed


@pytest.mark.asyncio
async def test_keys_are_independent(db):
    limiter = RateLimiter(db, max_requests=1, window_ms=WINDOW_MS)

    assert (await limiter.check("webhook:app_a", NOW)).allowed
    assert (await limiter.check("webhook:app_b", NOW)).allowed
    assert not (await limiter.check("webhook:app_a", NOW)).allowed


@pytest.mark.asyncio
async def test_defaults_come_from_settings(db):
    limiter = RateLimiter(db)

    assert limiter.max_requests == 100
    assert limiter.window_ms == 60_000


def _mock_session(dialect: str) -> MagicMock:
    session = MagicMock()
    session.get_bind.return_value.dialect.name = dialect
    session.execute = AsyncMock()
    return session


@pytest.mark.asyncio
async def test_postgres_checks_take_an_advisory_lock_per_key():
    session = _mock_session("postgresql")

    await RateLimiter(session)._lock_key("webhook:app")

    session.execute.assert_awaited_once()
    statement = str(session.execute.await_args.args[0])
    assert "pg_advisory_xact_lock" in statement
    assert "hashtext" in statement


@pytest.mark.asyncio
async def test_sqlite_checks_skip_the_advisory_lock():
    session = _mock_session("sqlite")

    await RateLimiter(session)._lock_key("webhook:app")

    session.execute.assert_not_awaited()
