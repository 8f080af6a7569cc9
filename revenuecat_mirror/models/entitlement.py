"""
Entitlement Model
=================

Access grants mirrored from RevenueCat, one row per
``(app_user_id, entitlement_id)``.
"""

from typing import Optional

from sqlalchemy import BigInteger, Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from revenuecat_mirror.db.base import Base, TimestampMixin, UUIDMixin


def is_entitlement_active(
    is_active: bool,
    expires_at_ms: Optional[int],
    billing_issue_detected_at_ms: Optional[int],
    now_ms: int,
) -> bool:
    """
    Effective active-ness of an entitlement at ``now_ms``.

    While a billing issue is outstanding the expiry check is suspended and
    the stored ``is_active`` flag is trusted (grace period). A later
    EXPIRATION flips the flag; a RENEWAL clears the marker.
    """
    if not is_active:
        return False
    if billing_issue_detected_at_ms is not None:
        return True
    if not expires_at_ms:
        return True
    return expires_at_ms > now_ms


class Entitlement(Base, UUIDMixin, TimestampMixin):
    """
    Entitlement model.

    Created on first grant, updated in place afterwards and soft-revoked
    through ``is_active``; rows are never deleted.
    """

    __tablename__ = "entitlements"

    app_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    entitlement_id: Mapped[str] = mapped_column(String(255), nullable=False)

    product_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at_ms: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    purchased_at_ms: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    store: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    is_sandbox: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    billing_issue_detected_at_ms: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
    )

    # Timestamp of the newest event applied to this row
    last_event_at_ms: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        UniqueConstraint("app_user_id", "entitlement_id", name="uq_entitlements_user_entitlement"),
        Index("idx_entitlements_app_user", "app_user_id"),
        Index("idx_entitlements_active", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<Entitlement(app_user_id={self.app_user_id}, "
            f"entitlement_id={self.entitlement_id}, is_active={self.is_active})>"
        )

    def is_active_at(self, now_ms: int) -> bool:
        """Check if the entitlement grants access at ``now_ms``."""
        return is_entitlement_active(
            self.is_active,
            self.expires_at_ms,
            self.billing_issue_detected_at_ms,
            now_ms,
        )
