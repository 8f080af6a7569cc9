"""
Database Models
===============

SQLAlchemy ORM models for all database entities.

All models are imported here to ensure they are registered
with SQLAlchemy's metadata for migrations and relationships.
"""

from revenuecat_mirror.models.customer import Customer, Experiment
from revenuecat_mirror.models.entitlement import Entitlement, is_entitlement_active
from revenuecat_mirror.models.subscription import (
    Subscription,
    is_in_grace_period,
    is_subscription_active,
)
from revenuecat_mirror.models.billing import (
    Invoice,
    Transfer,
    VirtualCurrencyBalance,
    VirtualCurrencyTransaction,
)
from revenuecat_mirror.models.webhook import (
    RateLimitCounter,
    WebhookEvent,
    WebhookEventStatus,
)

__all__ = [
    # Customer
    "Customer",
    "Experiment",
    # Entitlement
    "Entitlement",
    "is_entitlement_active",
    # Subscription
    "Subscription",
    "is_subscription_active",
    "is_in_grace_period",
    # Billing
    "Invoice",
    "Transfer",
    "VirtualCurrencyBalance",
    "VirtualCurrencyTransaction",
    # Webhook
    "WebhookEvent",
    "WebhookEventStatus",
    "RateLimitCounter",
]
