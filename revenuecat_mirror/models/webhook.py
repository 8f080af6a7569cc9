"""
Webhook Models
==============

Raw event log (idempotency + audit) and sliding-window rate limit counters.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from revenuecat_mirror.db.base import Base, JSONType, TimestampMixin, UUIDMixin


class WebhookEventStatus(str, Enum):
    """Outcome recorded for a logged webhook event."""
    PROCESSED = "processed"
    FAILED = "failed"
    IGNORED = "ignored"


class WebhookEvent(Base, UUIDMixin, TimestampMixin):
    """
    Webhook event log.

    ``event_id`` is the idempotency key. Rows are written once and never
    updated; the cleanup job purges them after the retention period.
    """

    __tablename__ = "webhook_events"

    event_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    app_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    app_user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    environment: Mapped[str] = mapped_column(String(16), nullable=False)
    store: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # Sanitised raw payload
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False)

    processed_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        default=WebhookEventStatus.PROCESSED.value,
        nullable=False,
    )
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_webhook_events_app_user", "app_user_id"),
        Index("idx_webhook_events_type", "event_type"),
        Index("idx_webhook_events_status", "status"),
        Index("idx_webhook_events_processed_at", "processed_at_ms"),
    )

    def __repr__(self) -> str:
        return (
            f"<WebhookEvent(event_id={self.event_id}, "
            f"event_type={self.event_type}, status={self.status})>"
        )


class RateLimitCounter(Base, UUIDMixin):
    """One row per admitted request inside a rate limit window."""

    __tablename__ = "rate_limits"

    key: Mapped[str] = mapped_column(String(255), nullable=False)
    timestamp_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_rate_limits_key_timestamp", "key", "timestamp_ms"),
        Index("idx_rate_limits_timestamp", "timestamp_ms"),
    )

    def __repr__(self) -> str:
        return f"<RateLimitCounter(key={self.key}, timestamp_ms={self.timestamp_ms})>"
