"""
Billing Record Models
=====================

Append-mostly records produced by TRANSFER, INVOICE_ISSUANCE and
VIRTUAL_CURRENCY_TRANSACTION events.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from revenuecat_mirror.db.base import Base, JSONType, TimestampMixin, UUIDMixin


class Transfer(Base, UUIDMixin, TimestampMixin):
    """Entitlement transfer between app user ids. Append-only."""

    __tablename__ = "transfers"

    event_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    transferred_from: Mapped[list] = mapped_column(JSONType, nullable=False)
    transferred_to: Mapped[list] = mapped_column(JSONType, nullable=False)
    entitlement_ids: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    timestamp_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_transfers_timestamp", "timestamp_ms"),
    )

    def __repr__(self) -> str:
        return f"<Transfer(event_id={self.event_id})>"


class Invoice(Base, UUIDMixin, TimestampMixin):
    """Invoice issued by the provider (web billing)."""

    __tablename__ = "invoices"

    invoice_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    app_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    product_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    store: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    environment: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    price_usd: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    price_in_purchased_currency: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 4),
        nullable=True,
    )

    issued_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_invoices_app_user", "app_user_id"),
    )

    def __repr__(self) -> str:
        return f"<Invoice(invoice_id={self.invoice_id}, app_user_id={self.app_user_id})>"


class VirtualCurrencyBalance(Base, UUIDMixin, TimestampMixin):
    """Running balance of one virtual currency for one customer."""

    __tablename__ = "virtual_currency_balances"

    app_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(64), nullable=False)
    currency_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    balance: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("app_user_id", "currency_code", name="uq_vc_balances_user_currency"),
        Index("idx_vc_balances_app_user", "app_user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<VirtualCurrencyBalance(app_user_id={self.app_user_id}, "
            f"currency_code={self.currency_code}, balance={self.balance})>"
        )


class VirtualCurrencyTransaction(Base, UUIDMixin, TimestampMixin):
    """Ledger entry for a single virtual currency adjustment. Append-only."""

    __tablename__ = "virtual_currency_transactions"

    transaction_id: Mapped[str] = mapped_column(String(255), nullable=False)
    app_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    product_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    environment: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    timestamp_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "transaction_id",
            "currency_code",
            name="uq_vc_transactions_transaction_currency",
        ),
        Index("idx_vc_transactions_app_user", "app_user_id"),
        Index("idx_vc_transactions_user_currency", "app_user_id", "currency_code"),
    )

    def __repr__(self) -> str:
        return (
            f"<VirtualCurrencyTransaction(transaction_id={self.transaction_id}, "
            f"currency_code={self.currency_code}, amount={self.amount})>"
        )
