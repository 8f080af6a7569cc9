"""
Scheduled Jobs
==============

Background tasks for maintenance operations:
- Rate limit counter cleanup (rows older than the window)
- Webhook event log retention (rows older than 30 days, batched)

Both only delete rows strictly older than their threshold and are safe to
run alongside live webhook traffic.
"""

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from revenuecat_mirror.config import settings
from revenuecat_mirror.models.webhook import RateLimitCounter, WebhookEvent
from revenuecat_mirror.utils.helpers import ms_to_datetime, now_ms as current_ms

logger = logging.getLogger(__name__)


class ScheduledJobService:
    """Service for scheduled background jobs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def cleanup_rate_limits(self, now_ms: Optional[int] = None) -> dict:
        """
        Delete rate limit counters that left the window.

        Run hourly.

        Returns:
            Summary of deleted rows
        """
        now = now_ms if now_ms is not None else current_ms()
        cutoff = now - settings.WEBHOOK_RATE_LIMIT_WINDOW_MS

        result = await self.db.execute(
            delete(RateLimitCounter).where(RateLimitCounter.timestamp_ms < cutoff)
        )
        await self.db.flush()

        deleted = result.rowcount or 0
        logger.info("Deleted %d expired rate limit counter(s)", deleted)

        return {
            "job": "cleanup_rate_limits",
            "processed": deleted,
            "errors": [],
            "run_at": ms_to_datetime(now).isoformat(),
        }

    async def cleanup_webhook_events(
        self,
        now_ms: Optional[int] = None,
        batch_size: Optional[int] = None,
    ) -> dict:
        """
        Delete one batch of webhook events past the retention period,
        oldest first.

        Run daily. A full batch means more rows are probably waiting;
        ``has_more`` tells the caller to run again.

        Returns:
            Summary of deleted rows
        """
        now = now_ms if now_ms is not None else current_ms()
        cutoff = now - settings.webhook_events_retention_ms
        limit = batch_size or settings.WEBHOOK_EVENTS_CLEANUP_BATCH_SIZE

        result = await self.db.execute(
            select(WebhookEvent.id)
            .where(WebhookEvent.processed_at_ms < cutoff)
            .order_by(WebhookEvent.processed_at_ms)
            .limit(limit)
        )
        ids = list(result.scalars().all())

        if ids:
            await self.db.execute(delete(WebhookEvent).where(WebhookEvent.id.in_(ids)))
            await self.db.flush()

        logger.info("Deleted %d webhook event(s) older than %d", len(ids), cutoff)

        return {
            "job": "cleanup_webhook_events",
            "processed": len(ids),
            "has_more": len(ids) == limit,
            "errors": [],
            "run_at": ms_to_datetime(now).isoformat(),
        }
