"""
Webhook Processor Tests
=======================

Tests for the dispatch pipeline:
- Idempotency by event id
- Per-app rate limiting
- Unknown event types
- Handler failure isolation (savepoint rollback + failed log row)
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from revenuecat_mirror.core.errors import (
    HandlerFailureError,
    InvalidArgumentError,
    RateLimitedError,
)
from revenuecat_mirror.core.rate_limit import RateLimiter
from revenuecat_mirror.models import Customer, Entitlement, WebhookEvent
from revenuecat_mirror.schemas.webhook import RevenueCatEventType
from revenuecat_mirror.services.event_handlers import EVENT_HANDLERS
from revenuecat_mirror.services.webhook_processor import WebhookProcessor, rate_limit_key
from tests.factories import NOW, dispatch, make_envelope, make_event


async def _count(db, model) -> int:
    return await db.scalar(select(func.count(model.id)))


def test_every_event_type_has_a_handler():
    assert set(EVENT_HANDLERS) == set(RevenueCatEventType)


def test_rate_limit_key():
    assert rate_limit_key("app_123") == "webhook:app_123"
    assert rate_limit_key(None) == "webhook:global"


@pytest.mark.asyncio
async def test_processes_event_and_logs_it(db):
    event = make_event()

    result = await dispatch(db, event)

    assert result.processed is True
    assert result.event_id == event["id"]

    logged = await db.scalar(select(WebhookEvent).where(WebhookEvent.event_id == event["id"]))
    assert logged.status == "processed"
    assert logged.event_type == "INITIAL_PURCHASE"
    assert logged.app_user_id == "user_1"
    assert logged.processed_at_ms == NOW
    assert logged.payload["original_transaction_id"] == "otx_1"


@pytest.mark.asyncio
async def test_duplicate_event_is_applied_once(db):
    event = make_event()

    first = await dispatch(db, event)
    second = await dispatch(db, event, now=NOW + 1000)

    assert first.processed is True
    assert second.processed is False
    assert second.event_id == event["id"]
    assert await _count(db, WebhookEvent) == 1
    assert await _count(db, Entitlement) == 1


@pytest.mark.asyncio
async def test_concurrent_duplicate_is_reported_as_duplicate(db):
    event = make_event()
    await dispatch(db, event)

    # Simulate losing the race: the pre-check misses, the unique index catches it
    with patch.object(WebhookProcessor, "_find_logged_event", AsyncMock(return_value=None)):
        result = await dispatch(db, event, now=NOW + 1000)

    assert result.processed is False
    assert await _count(db, WebhookEvent) == 1


@pytest.mark.asyncio
async def test_unknown_event_type_is_ignored(db):
    event = make_event("SOMETHING_NEW")

    result = await dispatch(db, event)

    assert result.processed is False
    logged = await db.scalar(select(WebhookEvent).where(WebhookEvent.event_id == event["id"]))
    assert logged.status == "ignored"
    assert await _count(db, Customer) == 0


@pytest.mark.asyncio
async def test_test_event_is_processed_without_side_effects(db):
    result = await dispatch(db, make_event("TEST"))

    assert result.processed is True
    assert await _count(db, Customer) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["id", "type"])
async def test_blank_id_or_type_is_rejected(db, field):
    event = make_event(**{field: "   "})

    with pytest.raises(InvalidArgumentError) as exc_info:
        await dispatch(db, event)

    assert exc_info.value.field == f"event.{field}"
    assert await _count(db, WebhookEvent) == 0


@pytest.mark.asyncio
async def test_handler_failure_rolls_back_mutations(db):
    async def failing_handler(handlers, event):
        await handlers._upsert_customer(event)
        raise RuntimeError("boom")

    event = make_event()
    with patch.dict(EVENT_HANDLERS, {RevenueCatEventType.INITIAL_PURCHASE: failing_handler}):
        with pytest.raises(HandlerFailureError) as exc_info:
            await dispatch(db, event)

    assert exc_info.value.event_id == event["id"]
    assert exc_info.value.status_code == 500

    assert await _count(db, Customer) == 0
    logged = await db.scalar(select(WebhookEvent).where(WebhookEvent.event_id == event["id"]))
    assert logged.status == "failed"
    assert logged.error == "boom"


@pytest.mark.asyncio
async def test_invalid_payload_is_logged_as_failed(db):
    event = make_event(period_type="LIFETIME")

    with pytest.raises(HandlerFailureError):
        await dispatch(db, event)

    logged = await db.scalar(select(WebhookEvent).where(WebhookEvent.event_id == event["id"]))
    assert logged.status == "failed"
    assert await _count(db, Entitlement) == 0


@pytest.mark.asyncio
async def test_failed_event_redelivery_is_a_duplicate(db):
    event = make_event(period_type="LIFETIME")
    with pytest.raises(HandlerFailureError):
        await dispatch(db, event)

    result = await dispatch(db, event, now=NOW + 1000)

    assert result.processed is False


@pytest.mark.asyncio
async def test_rate_limit_rejects_the_101st_event(db):
    limiter = RateLimiter(db, max_requests=100, window_ms=60_000)

    for i in range(100):
        result = await dispatch(db, make_event("TEST"), now=NOW + i, rate_limiter=limiter)
        assert result.processed is True

    rejected = make_event("TEST")
    with pytest.raises(RateLimitedError) as exc_info:
        await dispatch(db, rejected, now=NOW + 100, rate_limiter=limiter)

    error = exc_info.value
    assert error.status_code == 429
    assert error.reset_at_ms == NOW + 60_000
    assert error.retry_after == 60
    assert error.headers["Retry-After"] == "60"
    assert error.detail["rate_limited"] is True

    # Nothing was logged for the rejected delivery
    assert await _count(db, WebhookEvent) == 100
    assert (
        await db.scalar(select(WebhookEvent).where(WebhookEvent.event_id == rejected["id"]))
        is None
    )

    # Once the window has moved past the first request, deliveries resume
    result = await dispatch(db, rejected, now=NOW + 60_001, rate_limiter=limiter)
    assert result.processed is True


@pytest.mark.asyncio
async def test_rate_limit_is_per_app(db):
    limiter = RateLimiter(db, max_requests=1, window_ms=60_000)

    await dispatch(db, make_event("TEST", app_id="app_a"), rate_limiter=limiter)
    result = await dispatch(db, make_event("TEST", app_id="app_b"), rate_limiter=limiter)

    assert result.processed is True
    with pytest.raises(RateLimitedError):
        await dispatch(db, make_event("TEST", app_id="app_a"), rate_limiter=limiter)


@pytest.mark.asyncio
async def test_skip_rate_limit(db):
    limiter = RateLimiter(db, max_requests=1, window_ms=60_000)
    await dispatch(db, make_event("TEST"), rate_limiter=limiter)

    event = make_event("TEST")
    processor = WebhookProcessor(db, rate_limiter=limiter, clock=lambda: NOW)
    result = await processor.process(make_envelope(event), event, skip_rate_limit=True)

    assert result.processed is True
