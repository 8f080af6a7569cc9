"""
Subscription Schemas
====================

Response schemas for subscription read endpoints.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class SubscriptionResponse(BaseModel):
    """Mirrored subscription (purchase lineage)."""

    original_transaction_id: str
    app_user_id: str
    product_id: str
    entitlement_ids: Optional[list[str]] = None
    store: str
    environment: str
    period_type: str
    purchased_at_ms: int
    expiration_at_ms: Optional[int] = None
    transaction_id: str
    is_family_share: bool
    is_trial_conversion: Optional[bool] = None
    auto_renew_status: Optional[bool] = None
    cancel_reason: Optional[str] = None
    expiration_reason: Optional[str] = None
    grace_period_expiration_at_ms: Optional[int] = None
    billing_issue_detected_at_ms: Optional[int] = None
    auto_resume_at_ms: Optional[int] = None
    new_product_id: Optional[str] = None
    price_usd: Optional[Decimal] = None
    currency: Optional[str] = None
    price_in_purchased_currency: Optional[Decimal] = None
    country_code: Optional[str] = None
    tax_percentage: Optional[Decimal] = None
    commission_percentage: Optional[Decimal] = None
    offer_code: Optional[str] = None
    presented_offering_id: Optional[str] = None
    renewal_number: Optional[int] = None

    class Config:
        from_attributes = True


class GracePeriodStatus(BaseModel):
    """Billing-retry grace period state of a subscription."""

    in_grace_period: bool
    grace_period_expires_at_ms: Optional[int] = None
    billing_issue_detected_at_ms: Optional[int] = None
    expiration_at_ms: Optional[int] = None
