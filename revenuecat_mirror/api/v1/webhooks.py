"""
Webhooks API Endpoints
======================

Handles webhooks from RevenueCat and exposes the webhook event log.

Authentication:
    RevenueCat sends the configured authorization token in the
    ``Authorization`` header. We compare it against REVENUECAT_WEBHOOK_AUTH
    in constant time. The event log endpoints use the read API token.

Idempotency:
    Each RevenueCat event has a unique ``id``. The ``webhook_events`` table
    (unique on event id) records every dispatched event, so redeliveries are
    acknowledged without being applied twice.
"""

import json
import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Header, Query, Request
from pydantic import ValidationError as PydanticValidationError

from revenuecat_mirror.config import settings
from revenuecat_mirror.core.errors import (
    AuthenticationError,
    HandlerFailureError,
    InvalidArgumentError,
    NotFoundError,
)
from revenuecat_mirror.dependencies import ApiToken, DBSession, tokens_match
from revenuecat_mirror.schemas.common import BaseResponse, ErrorResponse
from revenuecat_mirror.schemas.webhook import WebhookEnvelope, WebhookEventResponse
from revenuecat_mirror.services.cache import CacheInvalidator
from revenuecat_mirror.services.webhook_event_service import WebhookEventService
from revenuecat_mirror.services.webhook_processor import WebhookProcessor
from revenuecat_mirror.utils.helpers import sanitize_payload

logger = logging.getLogger(__name__)

router = APIRouter()


def _affected_users(event: dict[str, Any]) -> list[str]:
    """Every app user id whose cached state an event may change."""
    users: list[str] = []
    if isinstance(event.get("app_user_id"), str):
        users.append(event["app_user_id"])
    for field in ("transferred_from", "transferred_to"):
        values = event.get(field)
        if isinstance(values, list):
            users.extend(value for value in values if isinstance(value, str))
    return users


@router.post(
    "/revenuecat",
    responses={
        400: {"model": ErrorResponse, "description": "Malformed event"},
        401: {"model": ErrorResponse, "description": "Invalid webhook authorization"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Event handler failed"},
    },
)
async def revenuecat_webhook(
    request: Request,
    db: DBSession,
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
):
    """
    Handle RevenueCat webhook events.

    Body: ``{"api_version": "1.0", "event": {...}}``.

    Returns ``{"processed": bool, "eventId": str}``; ``processed`` is false
    for duplicates and unhandled event types. Errors map to 400 (malformed
    event), 401 (bad authorization), 429 (rate limited, with
    ``Retry-After``) and 500 (handler failure, event logged as failed).
    """
    # ── Verify authorization ──────────────────────────────────────────────
    expected = settings.REVENUECAT_WEBHOOK_AUTH
    if expected and not tokens_match(authorization, expected):
        logger.warning("Unauthorized RevenueCat webhook attempt")
        raise AuthenticationError(message="Invalid webhook authorization")

    # ── Parse payload ─────────────────────────────────────────────────────
    try:
        body = await request.body()
        payload = json.loads(body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Invalid webhook payload: %s", e)
        raise InvalidArgumentError("Invalid JSON payload")

    # RevenueCat wraps the event data under the "event" key
    event = payload.get("event") if isinstance(payload, dict) else None
    if not isinstance(event, dict):
        raise InvalidArgumentError("Missing event object", field="event")
    if not isinstance(event.get("id"), str):
        raise InvalidArgumentError("Event id must be a string", field="event.id")
    if not isinstance(event.get("type"), str):
        raise InvalidArgumentError("Event type must be a string", field="event.type")

    event = sanitize_payload(event)

    request.state.webhook_event_id = event["id"]
    request.state.webhook_event_type = event["type"]

    try:
        envelope = WebhookEnvelope.model_validate(
            {
                "id": event["id"],
                "type": event["type"],
                "app_id": event.get("app_id"),
                "app_user_id": event.get("app_user_id"),
                "environment": event.get("environment", "PRODUCTION"),
                "store": event.get("store"),
            }
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise InvalidArgumentError(
            first.get("msg", "Invalid event"),
            field="event." + ".".join(str(loc) for loc in first.get("loc", [])),
        )

    logger.info(
        "Webhook received: type=%s user=%s event_id=%s",
        envelope.type,
        envelope.app_user_id,
        envelope.id,
    )

    # ── Process event ─────────────────────────────────────────────────────
    processor = WebhookProcessor(db)
    try:
        result = await processor.process(envelope, event)
    except HandlerFailureError:
        await CacheInvalidator.on_customer_change(*_affected_users(event))
        raise

    if result.processed:
        await CacheInvalidator.on_customer_change(*_affected_users(event))

    return result.model_dump(by_alias=True)


# =============================================================================
# Event Log
# =============================================================================

@router.get(
    "/events/failed",
    response_model=BaseResponse[list[WebhookEventResponse]],
    dependencies=[ApiToken],
)
async def list_failed_events(
    db: DBSession,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
):
    """Failed events, newest first."""
    events = await WebhookEventService(db).list_failed(limit=limit)
    return BaseResponse(data=[WebhookEventResponse.model_validate(e) for e in events])


@router.get(
    "/events/{event_id}",
    response_model=BaseResponse[WebhookEventResponse],
    dependencies=[ApiToken],
)
async def get_event(event_id: str, db: DBSession):
    event = await WebhookEventService(db).get_by_event_id(event_id)
    if event is None:
        raise NotFoundError(message=f"Webhook event {event_id} not found")
    return BaseResponse(data=WebhookEventResponse.model_validate(event))


@router.get(
    "/events",
    response_model=BaseResponse[list[WebhookEventResponse]],
    dependencies=[ApiToken],
)
async def list_events(
    db: DBSession,
    app_user_id: Optional[str] = None,
    event_type: Optional[str] = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
):
    """Events for a user or of a type, newest first. One filter is required."""
    service = WebhookEventService(db)
    if app_user_id:
        events = await service.list_by_user(app_user_id, limit=limit)
    elif event_type:
        events = await service.list_by_type(event_type, limit=limit)
    else:
        raise InvalidArgumentError("Either app_user_id or event_type is required")
    return BaseResponse(data=[WebhookEventResponse.model_validate(e) for e in events])
