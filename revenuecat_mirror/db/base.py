"""
Database Base Model
===================

Provides the base class for all SQLAlchemy models.
"""

from datetime import datetime
import uuid

from sqlalchemy import JSON, DateTime, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from revenuecat_mirror.utils.helpers import utc_now

# JSONB on PostgreSQL, plain JSON on SQLite (tests / local runs)
JSONType = JSONB().with_variant(JSON(), "sqlite")


class Base(DeclarativeBase):
    """
    Base class for all database models.

    Provides common columns and functionality.
    """

    # Type annotation for class attributes
    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class UUIDMixin:
    """
    Mixin that provides a UUID primary key.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )


class TimestampMixin:
    """
    Mixin that adds created_at and updated_at timestamps.

    Values are produced client-side so they are available on the instance
    right after a flush without a round-trip.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        server_default=func.now(),
        nullable=False,
    )
