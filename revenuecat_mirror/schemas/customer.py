"""
Customer Schemas
================

Response schemas for customer, entitlement and experiment read endpoints.
"""

from typing import Any, Optional
import uuid

from pydantic import BaseModel


class CustomerResponse(BaseModel):
    """Mirrored customer record."""

    id: uuid.UUID
    app_user_id: str
    original_app_user_id: str
    aliases: list[str]
    first_seen_at_ms: int
    last_seen_at_ms: int
    attributes: Optional[dict[str, Any]] = None

    class Config:
        from_attributes = True


class EntitlementResponse(BaseModel):
    """Stored entitlement row plus its effective state at request time."""

    app_user_id: str
    entitlement_id: str
    product_id: Optional[str] = None
    is_active: bool
    expires_at_ms: Optional[int] = None
    purchased_at_ms: Optional[int] = None
    store: Optional[str] = None
    is_sandbox: bool
    billing_issue_detected_at_ms: Optional[int] = None
    is_currently_active: bool = False

    class Config:
        from_attributes = True


class EntitlementCheckResponse(BaseModel):
    """Answer to "does this user have this entitlement right now"."""

    app_user_id: str
    entitlement_id: str
    is_active: bool


class ExperimentResponse(BaseModel):
    """Experiment enrollment."""

    app_user_id: str
    experiment_id: str
    variant: str
    offering_id: Optional[str] = None
    enrolled_at_ms: int

    class Config:
        from_attributes = True
