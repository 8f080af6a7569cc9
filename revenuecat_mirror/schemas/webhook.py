"""
Webhook Schemas
===============

Pydantic schemas for RevenueCat webhook ingestion and the event log API.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional
import uuid

from pydantic import BaseModel, Field, field_validator


# ─── RevenueCat Enumerations ─────────────────────────────────────────────────


class RevenueCatEventType(str, Enum):
    """All event types that RevenueCat can send via webhooks."""

    # Subscription lifecycle
    INITIAL_PURCHASE = "INITIAL_PURCHASE"
    RENEWAL = "RENEWAL"
    CANCELLATION = "CANCELLATION"
    UNCANCELLATION = "UNCANCELLATION"
    EXPIRATION = "EXPIRATION"
    BILLING_ISSUE = "BILLING_ISSUE"
    SUBSCRIPTION_PAUSED = "SUBSCRIPTION_PAUSED"
    SUBSCRIPTION_EXTENDED = "SUBSCRIPTION_EXTENDED"
    PRODUCT_CHANGE = "PRODUCT_CHANGE"
    NON_RENEWING_PURCHASE = "NON_RENEWING_PURCHASE"
    TRANSFER = "TRANSFER"
    TEMPORARY_ENTITLEMENT_GRANT = "TEMPORARY_ENTITLEMENT_GRANT"
    REFUND_REVERSED = "REFUND_REVERSED"
    # Informational
    TEST = "TEST"
    INVOICE_ISSUANCE = "INVOICE_ISSUANCE"
    VIRTUAL_CURRENCY_TRANSACTION = "VIRTUAL_CURRENCY_TRANSACTION"
    EXPERIMENT_ENROLLMENT = "EXPERIMENT_ENROLLMENT"
    # Deprecated, still accepted
    SUBSCRIBER_ALIAS = "SUBSCRIBER_ALIAS"


class Store(str, Enum):
    """Store a purchase was made through."""

    AMAZON = "AMAZON"
    APP_STORE = "APP_STORE"
    MAC_APP_STORE = "MAC_APP_STORE"
    PADDLE = "PADDLE"
    PLAY_STORE = "PLAY_STORE"
    PROMOTIONAL = "PROMOTIONAL"
    RC_BILLING = "RC_BILLING"
    ROKU = "ROKU"
    STRIPE = "STRIPE"
    TEST_STORE = "TEST_STORE"


class Environment(str, Enum):
    """RevenueCat event environment."""

    PRODUCTION = "PRODUCTION"
    SANDBOX = "SANDBOX"


class PeriodType(str, Enum):
    """Subscription period type."""

    TRIAL = "TRIAL"
    INTRO = "INTRO"
    NORMAL = "NORMAL"
    PROMOTIONAL = "PROMOTIONAL"
    PREPAID = "PREPAID"


# ─── Event Payload ───────────────────────────────────────────────────────────


class SubscriberAttribute(BaseModel):
    """A single subscriber attribute with its last-modified time."""

    value: Optional[str] = None
    updated_at_ms: int


class ExperimentPayload(BaseModel):
    """Experiment enrollment as carried in ``experiments[]``."""

    experiment_id: str
    experiment_variant: str
    enrolled_at_ms: Optional[int] = None


class CurrencyPayload(BaseModel):
    code: str
    name: Optional[str] = None


class VirtualCurrencyAdjustment(BaseModel):
    """One balance adjustment; ``amount`` may be negative."""

    amount: int
    currency: CurrencyPayload


class RevenueCatWebhookEvent(BaseModel):
    """
    Pydantic model for a RevenueCat webhook event payload.

    Matches the ``event`` object inside the webhook body:
    ``{ "api_version": "1.0", "event": { ... } }``

    Most fields are optional because every event type carries a different
    subset; TRANSFER events have no ``app_user_id`` at all.
    """

    id: str = Field(description="Unique event ID for idempotency")
    type: RevenueCatEventType
    app_id: Optional[str] = None
    app_user_id: Optional[str] = None
    original_app_user_id: Optional[str] = None
    aliases: list[str] = Field(default_factory=list)
    event_timestamp_ms: Optional[int] = None

    # Purchase details
    product_id: Optional[str] = None
    entitlement_ids: Optional[list[str]] = None
    period_type: Optional[PeriodType] = None
    purchased_at_ms: Optional[int] = None
    expiration_at_ms: Optional[int] = None
    transaction_id: Optional[str] = None
    original_transaction_id: Optional[str] = None
    store: Optional[Store] = None
    environment: Optional[Environment] = None
    is_family_share: Optional[bool] = None
    is_trial_conversion: Optional[bool] = None

    # Pricing
    price: Optional[Decimal] = None
    price_in_purchased_currency: Optional[Decimal] = None
    currency: Optional[str] = None
    country_code: Optional[str] = None
    tax_percentage: Optional[Decimal] = None
    commission_percentage: Optional[Decimal] = None
    offer_code: Optional[str] = None
    presented_offering_id: Optional[str] = None
    renewal_number: Optional[int] = None

    # Lifecycle
    cancel_reason: Optional[str] = None
    expiration_reason: Optional[str] = None
    grace_period_expiration_at_ms: Optional[int] = None
    auto_resume_at_ms: Optional[int] = None
    new_product_id: Optional[str] = None

    # TRANSFER
    transferred_from: Optional[list[str]] = None
    transferred_to: Optional[list[str]] = None

    # EXPERIMENT_ENROLLMENT
    experiment_id: Optional[str] = None
    experiment_variant: Optional[str] = None
    offering_id: Optional[str] = None
    experiment_enrolled_at_ms: Optional[int] = None

    # VIRTUAL_CURRENCY_TRANSACTION
    adjustments: Optional[list[VirtualCurrencyAdjustment]] = None
    virtual_currency_transaction_id: Optional[str] = None
    source: Optional[str] = None

    # INVOICE_ISSUANCE
    invoice_id: Optional[str] = None

    subscriber_attributes: Optional[dict[str, SubscriberAttribute]] = None
    experiments: Optional[list[ExperimentPayload]] = None

    class Config:
        extra = "allow"
        use_enum_values = True


class WebhookEnvelope(BaseModel):
    """
    Routing fields pulled off an event before dispatch.

    The full payload travels separately and is only validated against
    :class:`RevenueCatWebhookEvent` once a handler has been selected.
    """

    id: str = Field(max_length=255)
    type: str = Field(max_length=64)
    app_id: Optional[str] = Field(default=None, max_length=255)
    app_user_id: Optional[str] = Field(default=None, max_length=255)
    environment: Environment = Environment.PRODUCTION
    store: Optional[Store] = None

    class Config:
        use_enum_values = True

    @field_validator("id", "type")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Event ids and types must carry a value."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v


# ─── Request / Response Schemas ──────────────────────────────────────────────


class WebhookProcessResult(BaseModel):
    """Result of processing one webhook delivery."""

    processed: bool
    event_id: str = Field(serialization_alias="eventId")


class WebhookEventResponse(BaseModel):
    """Logged webhook event as returned by the event log API."""

    id: uuid.UUID
    event_id: str
    event_type: str
    app_id: Optional[str] = None
    app_user_id: Optional[str] = None
    environment: str
    store: Optional[str] = None
    payload: dict[str, Any]
    processed_at_ms: int
    status: str
    error: Optional[str] = None

    class Config:
        from_attributes = True
