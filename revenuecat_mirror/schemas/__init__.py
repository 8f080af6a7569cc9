"""
Pydantic Schemas
================

Request/response schemas for API validation.
"""

from revenuecat_mirror.schemas.common import (
    BaseResponse,
    ErrorDetail,
    ErrorResponse,
)
from revenuecat_mirror.schemas.webhook import (
    Environment,
    PeriodType,
    RevenueCatEventType,
    RevenueCatWebhookEvent,
    Store,
    WebhookEnvelope,
    WebhookEventResponse,
    WebhookProcessResult,
)

__all__ = [
    "BaseResponse",
    "ErrorDetail",
    "ErrorResponse",
    "Environment",
    "PeriodType",
    "RevenueCatEventType",
    "RevenueCatWebhookEvent",
    "Store",
    "WebhookEnvelope",
    "WebhookEventResponse",
    "WebhookProcessResult",
]
