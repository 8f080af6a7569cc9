"""
Subscription Models
===================

SQLAlchemy model for purchase lineages mirrored from RevenueCat webhooks.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from revenuecat_mirror.db.base import Base, JSONType, TimestampMixin, UUIDMixin


def is_subscription_active(
    expiration_at_ms: Optional[int],
    grace_period_expiration_at_ms: Optional[int],
    now_ms: int,
) -> bool:
    """A subscription without expiry never lapses; otherwise grace extends it."""
    if not expiration_at_ms:
        return True
    return max(expiration_at_ms, grace_period_expiration_at_ms or 0) > now_ms


def is_in_grace_period(
    billing_issue_detected_at_ms: Optional[int],
    expiration_at_ms: Optional[int],
    grace_period_expiration_at_ms: Optional[int],
    now_ms: int,
) -> bool:
    """Normal term has lapsed but the billing-retry grace window has not."""
    if billing_issue_detected_at_ms is None or grace_period_expiration_at_ms is None:
        return False
    if grace_period_expiration_at_ms <= now_ms:
        return False
    return expiration_at_ms is not None and expiration_at_ms <= now_ms


class Subscription(Base, UUIDMixin, TimestampMixin):
    """
    Subscription model.

    One row per purchase lineage, keyed by the store's original transaction
    id (stable across renewals, unlike ``transaction_id``).
    """

    __tablename__ = "subscriptions"

    original_transaction_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    app_user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Product / store details
    product_id: Mapped[str] = mapped_column(String(255), nullable=False)
    entitlement_ids: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    store: Mapped[str] = mapped_column(String(32), nullable=False)
    environment: Mapped[str] = mapped_column(String(16), nullable=False)
    period_type: Mapped[str] = mapped_column(String(16), nullable=False)
    purchased_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expiration_at_ms: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    transaction_id: Mapped[str] = mapped_column(String(255), nullable=False)
    is_family_share: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_trial_conversion: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    # Lifecycle state
    auto_renew_status: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    expiration_reason: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    grace_period_expiration_at_ms: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
    )
    billing_issue_detected_at_ms: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
    )
    auto_resume_at_ms: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    new_product_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Pricing
    price_usd: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    price_in_purchased_currency: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 4),
        nullable=True,
    )
    country_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    tax_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 4), nullable=True)
    commission_percentage: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(8, 4),
        nullable=True,
    )
    offer_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    presented_offering_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    renewal_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Timestamp of the newest event applied to this row
    last_event_at_ms: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # Indexes
    __table_args__ = (
        Index("idx_subscriptions_app_user", "app_user_id"),
        Index("idx_subscriptions_product", "product_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription(original_transaction_id={self.original_transaction_id}, "
            f"app_user_id={self.app_user_id}, product_id={self.product_id})>"
        )

    def is_active_at(self, now_ms: int) -> bool:
        """Check if the subscription is within its term (or grace) at ``now_ms``."""
        return is_subscription_active(
            self.expiration_at_ms,
            self.grace_period_expiration_at_ms,
            now_ms,
        )

    def is_in_grace_period_at(self, now_ms: int) -> bool:
        """Check if the subscription is being kept alive by a billing grace period."""
        return is_in_grace_period(
            self.billing_issue_detected_at_ms,
            self.expiration_at_ms,
            self.grace_period_expiration_at_ms,
            now_ms,
        )
