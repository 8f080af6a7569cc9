"""
Cleanup Worker
==============

Background asyncio worker that runs the maintenance jobs on fixed intervals.

Lifecycle:
    1. ``start()`` is called during the FastAPI lifespan startup.
    2. One loop per job sleeps for its interval, then runs the job in a
       fresh session and commits.
    3. ``stop()`` is called during shutdown; it cancels the loops.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from revenuecat_mirror.config import settings
from revenuecat_mirror.db.session import get_session_factory
from revenuecat_mirror.services.scheduled_jobs import ScheduledJobService

logger = logging.getLogger(__name__)

Job = Callable[[ScheduledJobService], Awaitable[dict]]


async def _cleanup_webhook_events(jobs: ScheduledJobService) -> dict:
    return await jobs.cleanup_webhook_events()


async def _cleanup_rate_limits(jobs: ScheduledJobService) -> dict:
    return await jobs.cleanup_rate_limits()


class CleanupWorker:
    """Runs rate limit and webhook event cleanup in the background."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        rate_limit_interval: Optional[float] = None,
        webhook_events_interval: Optional[float] = None,
    ) -> None:
        self._session_factory = session_factory
        self._rate_limit_interval = (
            rate_limit_interval or settings.RATE_LIMIT_CLEANUP_INTERVAL_SECONDS
        )
        self._webhook_events_interval = (
            webhook_events_interval or settings.WEBHOOK_EVENTS_CLEANUP_INTERVAL_SECONDS
        )
        self._running = False
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return self._running

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        """Start one loop per job."""
        if self._running:
            return

        self._running = True
        self._tasks = [
            asyncio.create_task(
                self._loop(
                    "cleanup_rate_limits",
                    self.run_rate_limit_cleanup,
                    self._rate_limit_interval,
                )
            ),
            asyncio.create_task(
                self._loop(
                    "cleanup_webhook_events",
                    self.run_webhook_events_cleanup,
                    self._webhook_events_interval,
                )
            ),
        ]
        logger.info("CleanupWorker started")

    async def stop(self) -> None:
        """Cancel the loops and wait for them to finish."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("CleanupWorker stopped")

    # -- jobs --------------------------------------------------------------

    async def run_job(self, job: Job) -> dict:
        """Run a single job in its own session and commit."""
        session_factory = self._session_factory or get_session_factory()
        async with session_factory() as session:
            try:
                summary = await job(ScheduledJobService(session))
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return summary

    async def run_rate_limit_cleanup(self) -> dict:
        return await self.run_job(_cleanup_rate_limits)

    async def run_webhook_events_cleanup(self) -> dict:
        """Delete batches of expired webhook events until none are left."""
        total = 0
        while True:
            summary = await self.run_job(_cleanup_webhook_events)
            total += summary["processed"]
            if not summary.get("has_more"):
                break
        return {**summary, "processed": total}

    async def _loop(
        self,
        name: str,
        runner: Callable[[], Awaitable[dict]],
        interval: float,
    ) -> None:
        while self._running:
            try:
                await asyncio.sleep(interval)
                summary = await runner()
                logger.info("%s removed %d row(s)", name, summary["processed"])
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("%s failed", name)
