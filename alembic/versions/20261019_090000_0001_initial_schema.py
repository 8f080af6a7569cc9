"""Initial schema: customers, entitlements, subscriptions, billing records, webhook log

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSON_TYPE = postgresql.JSONB().with_variant(sa.JSON(), "sqlite")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade database schema."""

    # ------------------------------------------------------------------
    # Customers and experiments
    # ------------------------------------------------------------------
    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("app_user_id", sa.String(255), nullable=False, unique=True),
        sa.Column("original_app_user_id", sa.String(255), nullable=False),
        sa.Column("aliases", JSON_TYPE, nullable=False),
        sa.Column("first_seen_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("last_seen_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("attributes", JSON_TYPE, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_customers_original_app_user", "customers", ["original_app_user_id"])

    op.create_table(
        "experiments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("app_user_id", sa.String(255), nullable=False),
        sa.Column("experiment_id", sa.String(255), nullable=False),
        sa.Column("variant", sa.String(255), nullable=False),
        sa.Column("offering_id", sa.String(255), nullable=True),
        sa.Column("enrolled_at_ms", sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("app_user_id", "experiment_id", name="uq_experiments_user_experiment"),
    )
    op.create_index("idx_experiments_experiment", "experiments", ["experiment_id"])

    # ------------------------------------------------------------------
    # Entitlements and subscriptions
    # ------------------------------------------------------------------
    op.create_table(
        "entitlements",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("app_user_id", sa.String(255), nullable=False),
        sa.Column("entitlement_id", sa.String(255), nullable=False),
        sa.Column("product_id", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("expires_at_ms", sa.BigInteger(), nullable=True),
        sa.Column("purchased_at_ms", sa.BigInteger(), nullable=True),
        sa.Column("store", sa.String(32), nullable=True),
        sa.Column("is_sandbox", sa.Boolean(), nullable=False),
        sa.Column("billing_issue_detected_at_ms", sa.BigInteger(), nullable=True),
        sa.Column("last_event_at_ms", sa.BigInteger(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("app_user_id", "entitlement_id", name="uq_entitlements_user_entitlement"),
    )
    op.create_index("idx_entitlements_app_user", "entitlements", ["app_user_id"])
    op.create_index("idx_entitlements_active", "entitlements", ["is_active"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("original_transaction_id", sa.String(255), nullable=False, unique=True),
        sa.Column("app_user_id", sa.String(255), nullable=False),
        sa.Column("product_id", sa.String(255), nullable=False),
        sa.Column("entitlement_ids", JSON_TYPE, nullable=True),
        sa.Column("store", sa.String(32), nullable=False),
        sa.Column("environment", sa.String(16), nullable=False),
        sa.Column("period_type", sa.String(16), nullable=False),
        sa.Column("purchased_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("expiration_at_ms", sa.BigInteger(), nullable=True),
        sa.Column("transaction_id", sa.String(255), nullable=False),
        sa.Column("is_family_share", sa.Boolean(), nullable=False),
        sa.Column("is_trial_conversion", sa.Boolean(), nullable=True),
        sa.Column("auto_renew_status", sa.Boolean(), nullable=True),
        sa.Column("cancel_reason", sa.String(64), nullable=True),
        sa.Column("expiration_reason", sa.String(64), nullable=True),
        sa.Column("grace_period_expiration_at_ms", sa.BigInteger(), nullable=True),
        sa.Column("billing_issue_detected_at_ms", sa.BigInteger(), nullable=True),
        sa.Column("auto_resume_at_ms", sa.BigInteger(), nullable=True),
        sa.Column("new_product_id", sa.String(255), nullable=True),
        sa.Column("price_usd", sa.Numeric(12, 4), nullable=True),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("price_in_purchased_currency", sa.Numeric(12, 4), nullable=True),
        sa.Column("country_code", sa.String(8), nullable=True),
        sa.Column("tax_percentage", sa.Numeric(8, 4), nullable=True),
        sa.Column("commission_percentage", sa.Numeric(8, 4), nullable=True),
        sa.Column("offer_code", sa.Text(), nullable=True),
        sa.Column("presented_offering_id", sa.String(255), nullable=True),
        sa.Column("renewal_number", sa.Integer(), nullable=True),
        sa.Column("last_event_at_ms", sa.BigInteger(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_subscriptions_app_user", "subscriptions", ["app_user_id"])
    op.create_index("idx_subscriptions_product", "subscriptions", ["product_id"])

    # ------------------------------------------------------------------
    # Billing records
    # ------------------------------------------------------------------
    op.create_table(
        "transfers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("event_id", sa.String(255), nullable=False, unique=True),
        sa.Column("transferred_from", JSON_TYPE, nullable=False),
        sa.Column("transferred_to", JSON_TYPE, nullable=False),
        sa.Column("entitlement_ids", JSON_TYPE, nullable=True),
        sa.Column("timestamp_ms", sa.BigInteger(), nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_transfers_timestamp", "transfers", ["timestamp_ms"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("invoice_id", sa.String(255), nullable=False, unique=True),
        sa.Column("app_user_id", sa.String(255), nullable=False),
        sa.Column("product_id", sa.String(255), nullable=True),
        sa.Column("store", sa.String(32), nullable=True),
        sa.Column("environment", sa.String(16), nullable=True),
        sa.Column("price_usd", sa.Numeric(12, 4), nullable=True),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("price_in_purchased_currency", sa.Numeric(12, 4), nullable=True),
        sa.Column("issued_at_ms", sa.BigInteger(), nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_invoices_app_user", "invoices", ["app_user_id"])

    op.create_table(
        "virtual_currency_balances",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("app_user_id", sa.String(255), nullable=False),
        sa.Column("currency_code", sa.String(64), nullable=False),
        sa.Column("currency_name", sa.String(255), nullable=True),
        sa.Column("balance", sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("app_user_id", "currency_code", name="uq_vc_balances_user_currency"),
    )
    op.create_index("idx_vc_balances_app_user", "virtual_currency_balances", ["app_user_id"])

    op.create_table(
        "virtual_currency_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("transaction_id", sa.String(255), nullable=False),
        sa.Column("app_user_id", sa.String(255), nullable=False),
        sa.Column("currency_code", sa.String(64), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(64), nullable=True),
        sa.Column("product_id", sa.String(255), nullable=True),
        sa.Column("environment", sa.String(16), nullable=True),
        sa.Column("timestamp_ms", sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "transaction_id",
            "currency_code",
            name="uq_vc_transactions_transaction_currency",
        ),
    )
    op.create_index("idx_vc_transactions_app_user", "virtual_currency_transactions", ["app_user_id"])
    op.create_index(
        "idx_vc_transactions_user_currency",
        "virtual_currency_transactions",
        ["app_user_id", "currency_code"],
    )

    # ------------------------------------------------------------------
    # Webhook log and rate limit counters
    # ------------------------------------------------------------------
    op.create_table(
        "webhook_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("event_id", sa.String(255), nullable=False, unique=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("app_id", sa.String(255), nullable=True),
        sa.Column("app_user_id", sa.String(255), nullable=True),
        sa.Column("environment", sa.String(16), nullable=False),
        sa.Column("store", sa.String(32), nullable=True),
        sa.Column("payload", JSON_TYPE, nullable=False),
        sa.Column("processed_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_webhook_events_app_user", "webhook_events", ["app_user_id"])
    op.create_index("idx_webhook_events_type", "webhook_events", ["event_type"])
    op.create_index("idx_webhook_events_status", "webhook_events", ["status"])
    op.create_index("idx_webhook_events_processed_at", "webhook_events", ["processed_at_ms"])

    op.create_table(
        "rate_limits",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("timestamp_ms", sa.BigInteger(), nullable=False),
    )
    op.create_index("idx_rate_limits_key_timestamp", "rate_limits", ["key", "timestamp_ms"])
    op.create_index("idx_rate_limits_timestamp", "rate_limits", ["timestamp_ms"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table("rate_limits")
    op.drop_table("webhook_events")
    op.drop_table("virtual_currency_transactions")
    op.drop_table("virtual_currency_balances")
    op.drop_table("invoices")
    op.drop_table("transfers")
    op.drop_table("subscriptions")
    op.drop_table("entitlements")
    op.drop_table("experiments")
    op.drop_table("customers")
