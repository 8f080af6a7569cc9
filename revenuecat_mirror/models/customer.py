"""
Customer Models
===============

SQLAlchemy models for mirrored customers and their experiment enrollments.
"""

from typing import Optional

from sqlalchemy import BigInteger, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from revenuecat_mirror.db.base import Base, JSONType, TimestampMixin, UUIDMixin


class Customer(Base, UUIDMixin, TimestampMixin):
    """
    Customer model.

    Created on the first event that references an ``app_user_id`` and never
    deleted. ``aliases`` only grows; ``attributes`` maps each attribute key
    to ``{"value": ..., "updated_at_ms": ...}``.
    """

    __tablename__ = "customers"

    app_user_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    original_app_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    aliases: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    first_seen_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_seen_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)

    attributes: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    __table_args__ = (
        Index("idx_customers_original_app_user", "original_app_user_id"),
    )

    def __repr__(self) -> str:
        return f"<Customer(app_user_id={self.app_user_id})>"


class Experiment(Base, UUIDMixin, TimestampMixin):
    """Experiment enrollment, one row per ``(app_user_id, experiment_id)``."""

    __tablename__ = "experiments"

    app_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    experiment_id: Mapped[str] = mapped_column(String(255), nullable=False)
    variant: Mapped[str] = mapped_column(String(255), nullable=False)
    offering_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    enrolled_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint("app_user_id", "experiment_id", name="uq_experiments_user_experiment"),
        Index("idx_experiments_experiment", "experiment_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Experiment(app_user_id={self.app_user_id}, "
            f"experiment_id={self.experiment_id}, variant={self.variant})>"
        )
