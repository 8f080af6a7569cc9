"""
Webhook Processor
=================

Dispatches one RevenueCat webhook delivery:

1. validate the envelope
2. check-and-increment the per-app rate limit window
3. short-circuit duplicates by event id
4. run the type handler inside a SAVEPOINT
5. write exactly one ``webhook_events`` row and commit

A handler failure rolls back the savepoint only, so the ``failed`` log row
is committed without any partial entity mutation, and the failure is then
raised to the caller.
"""

import logging
import math
from typing import Any, Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from revenuecat_mirror.core.errors import (
    HandlerFailureError,
    InvalidArgumentError,
    RateLimitedError,
)
from revenuecat_mirror.core.rate_limit import RateLimiter
from revenuecat_mirror.models.webhook import WebhookEvent, WebhookEventStatus
from revenuecat_mirror.schemas.webhook import (
    RevenueCatEventType,
    RevenueCatWebhookEvent,
    WebhookEnvelope,
    WebhookProcessResult,
)
from revenuecat_mirror.services.event_handlers import EVENT_HANDLERS, EventHandlers
from revenuecat_mirror.utils.helpers import now_ms

logger = logging.getLogger(__name__)


def rate_limit_key(app_id: Optional[str]) -> str:
    """Rate limit bucket for an app (``global`` when unknown)."""
    return f"webhook:{app_id or 'global'}"


class WebhookProcessor:
    """Service for processing RevenueCat webhook events."""

    def __init__(
        self,
        db: AsyncSession,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.db = db
        self.rate_limiter = rate_limiter or RateLimiter(db)
        self.clock = clock

    @staticmethod
    def _resolve_event_type(event_type: str) -> Optional[RevenueCatEventType]:
        try:
            return RevenueCatEventType(event_type)
        except ValueError:
            return None

    async def _find_logged_event(self, event_id: str) -> Optional[WebhookEvent]:
        result = await self.db.execute(
            select(WebhookEvent).where(WebhookEvent.event_id == event_id)
        )
        return result.scalar_one_or_none()

    async def process(
        self,
        event: WebhookEnvelope,
        payload: dict[str, Any],
        *,
        skip_rate_limit: bool = False,
    ) -> WebhookProcessResult:
        """
        Process a webhook event.

        Args:
            event: Routing fields of the event
            payload: Sanitised raw ``event`` object
            skip_rate_limit: Bypass the rate limit gate (internal replays)

        Returns:
            WebhookProcessResult with ``processed=False`` for duplicates and
            ignored event types

        Raises:
            InvalidArgumentError: Empty event id or type
            RateLimitedError: Window saturated for the app
            HandlerFailureError: Handler raised; logged as ``failed``
        """
        event_id = (event.id or "").strip()
        event_type = (event.type or "").strip()

        if not event_id:
            raise InvalidArgumentError("Event id must not be empty", field="event.id")
        if not event_type:
            raise InvalidArgumentError("Event type must not be empty", field="event.type")

        now = self.clock()

        # Rate limit gate
        if not skip_rate_limit:
            limit = await self.rate_limiter.check(rate_limit_key(event.app_id), now)
            if not limit.allowed:
                await self.db.rollback()
                retry_after = max(1, math.ceil((limit.reset_at_ms - now) / 1000))
                raise RateLimitedError(
                    reset_at_ms=limit.reset_at_ms,
                    remaining=limit.remaining,
                    retry_after=retry_after,
                )

        # Idempotency check
        if await self._find_logged_event(event_id) is not None:
            await self.db.commit()
            logger.info("Duplicate webhook event %s (%s), skipping", event_id, event_type)
            return WebhookProcessResult(processed=False, event_id=event_id)

        status = WebhookEventStatus.IGNORED
        error: Optional[str] = None
        failure: Optional[Exception] = None

        resolved_type = self._resolve_event_type(event_type)
        handler = EVENT_HANDLERS.get(resolved_type) if resolved_type else None

        if handler is None:
            logger.info("Ignoring unhandled webhook event type %s (%s)", event_type, event_id)
        else:
            try:
                async with self.db.begin_nested():
                    parsed = RevenueCatWebhookEvent.model_validate(payload)
                    await handler(EventHandlers(self.db, now_ms=now), parsed)
                status = WebhookEventStatus.PROCESSED
            except Exception as e:
                status = WebhookEventStatus.FAILED
                error = str(e) or type(e).__name__
                failure = e
                logger.exception("Webhook handler failed for %s (%s)", event_id, event_type)

        self.db.add(
            WebhookEvent(
                event_id=event_id,
                event_type=event_type,
                app_id=event.app_id,
                app_user_id=event.app_user_id,
                environment=event.environment,
                store=event.store,
                payload=payload,
                processed_at_ms=now,
                status=status.value,
                error=error,
            )
        )

        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent delivery of the same event id won
            await self.db.rollback()
            logger.info("Webhook event %s was logged concurrently, treating as duplicate", event_id)
            return WebhookProcessResult(processed=False, event_id=event_id)

        if failure is not None:
            raise HandlerFailureError(event_id, event_type, error) from failure

        logger.info("Webhook event %s (%s) -> %s", event_id, event_type, status.value)
        return WebhookProcessResult(
            processed=status == WebhookEventStatus.PROCESSED,
            event_id=event_id,
        )
