"""
Rate Limiting
=============

Store-backed sliding window rate limiting for webhook ingestion.

Each admitted request leaves one ``rate_limits`` row; the window is the
set of rows for a key newer than ``now - window_ms``. Counting and
inserting happen in the caller's session, so the admission commits or
rolls back together with the webhook it gated.
"""

from dataclasses import dataclass
import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from revenuecat_mirror.config import settings
from revenuecat_mirror.models.webhook import RateLimitCounter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check."""

    allowed: bool
    remaining: int
    reset_at_ms: int


class RateLimiter:
    """
    Sliding window rate limiter backed by the database.

    Default limit: 100 requests per 60 seconds per key.
    """

    def __init__(
        self,
        db: AsyncSession,
        max_requests: Optional[int] = None,
        window_ms: Optional[int] = None,
    ):
        self.db = db
        self.max_requests = max_requests or settings.WEBHOOK_RATE_LIMIT_MAX_REQUESTS
        self.window_ms = window_ms or settings.WEBHOOK_RATE_LIMIT_WINDOW_MS

    async def check(self, key: str, now_ms: int) -> RateLimitResult:
        """
        Check-and-increment the window for ``key``.

        Args:
            key: Rate limit bucket, e.g. ``webhook:<app_id>``
            now_ms: Current time in epoch milliseconds

        Returns:
            RateLimitResult; when allowed, a counter row has been added
        """
        await self._lock_key(key)
        window_start = now_ms - self.window_ms

        result = await self.db.execute(
            select(
                func.count(RateLimitCounter.id),
                func.min(RateLimitCounter.timestamp_ms),
            ).where(
                RateLimitCounter.key == key,
                RateLimitCounter.timestamp_ms >= window_start,
            )
        )
        count, earliest = result.one()
        count = count or 0

        reset_at_ms = (earliest + self.window_ms) if earliest is not None else now_ms + self.window_ms

        if count >= self.max_requests:
            logger.info("Rate limit exceeded for %s (%d in window)", key, count)
            return RateLimitResult(allowed=False, remaining=0, reset_at_ms=reset_at_ms)

        self.db.add(RateLimitCounter(key=key, timestamp_ms=now_ms))
        await self.db.flush()

        return RateLimitResult(
            allowed=True,
            remaining=self.max_requests - count - 1,
            reset_at_ms=reset_at_ms,
        )

    async def _lock_key(self, key: str) -> None:
        """
        Serialize concurrent checks of one key on PostgreSQL.

        Under READ COMMITTED two transactions can both count below capacity
        and both insert. The transaction-scoped advisory lock is released on
        commit or rollback. SQLite already serializes writers.
        """
        if self.db.get_bind().dialect.name != "postgresql":
            return
        await self.db.execute(select(func.pg_advisory_xact_lock(func.hashtext(key))))
