"""
Event Handler Tests
===================

End-to-end lifecycle scenarios through the processor:
- Purchases, renewals, cancellations and expirations
- Billing issue grace period
- Out-of-order (stale) events
- Customer attribute and alias merging
- Transfers, invoices, virtual currency and experiments
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from revenuecat_mirror.models import (
    Customer,
    Entitlement,
    Experiment,
    Invoice,
    Subscription,
    Transfer,
    VirtualCurrencyBalance,
    VirtualCurrencyTransaction,
)
from revenuecat_mirror.services.entitlement_service import EntitlementService
from revenuecat_mirror.services.subscription_service import SubscriptionService
from tests.factories import DAY_MS, NOW, SECOND_MS, dispatch, make_event


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _entitlement(db, app_user_id: str = "user_1", entitlement_id: str = "premium"):
    return await db.scalar(
        select(Entitlement).where(
            Entitlement.app_user_id == app_user_id,
            Entitlement.entitlement_id == entitlement_id,
        )
    )


async def _subscription(db, original_transaction_id: str = "otx_1"):
    return await db.scalar(
        select(Subscription).where(Subscription.original_transaction_id == original_transaction_id)
    )


async def _customer(db, app_user_id: str = "user_1"):
    return await db.scalar(select(Customer).where(Customer.app_user_id == app_user_id))


async def _has(db, app_user_id: str, entitlement_id: str, now: int) -> bool:
    return await EntitlementService(db).check(app_user_id, entitlement_id, now_ms=now)


# ---------------------------------------------------------------------------
# Purchases and lifecycle
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_initial_purchase_creates_customer_subscription_and_entitlement(db):
    await dispatch(db, make_event(country_code="US", renewal_number=1))

    customer = await _customer(db)
    assert customer.original_app_user_id == "user_1"
    assert customer.first_seen_at_ms == NOW
    assert customer.last_seen_at_ms == NOW

    subscription = await _subscription(db)
    assert subscription.app_user_id == "user_1"
    assert subscription.product_id == "premium_monthly"
    assert subscription.entitlement_ids == ["premium"]
    assert subscription.store == "APP_STORE"
    assert subscription.environment == "PRODUCTION"
    assert subscription.period_type == "NORMAL"
    assert subscription.expiration_at_ms == NOW + 30 * DAY_MS
    assert subscription.price_usd == Decimal("9.99")
    assert subscription.country_code == "US"
    assert subscription.renewal_number == 1

    entitlement = await _entitlement(db)
    assert entitlement.is_active is True
    assert entitlement.product_id == "premium_monthly"
    assert entitlement.expires_at_ms == NOW + 30 * DAY_MS
    assert entitlement.is_sandbox is False
    assert await _has(db, "user_1", "premium", NOW)


@pytest.mark.asyncio
async def test_purchase_then_expiration(db):
    await dispatch(db, make_event())
    assert await _has(db, "user_1", "premium", NOW)

    await dispatch(
        db,
        make_event(
            "EXPIRATION",
            ts=NOW + SECOND_MS,
            expiration_at_ms=NOW - SECOND_MS,
            expiration_reason="UNSUBSCRIBE",
        ),
        now=NOW + SECOND_MS,
    )

    assert not await _has(db, "user_1", "premium", NOW + SECOND_MS)
    entitlement = await _entitlement(db)
    assert entitlement.is_active is False
    subscription = await _subscription(db)
    assert subscription.expiration_reason == "UNSUBSCRIBE"


@pytest.mark.asyncio
async def test_expiration_without_entitlement_ids_revokes_everything(db):
    await dispatch(db, make_event(entitlement_ids=["premium", "pro"]))

    await dispatch(db, make_event("EXPIRATION", ts=NOW + SECOND_MS, entitlement_ids=None))

    assert not await _has(db, "user_1", "premium", NOW + SECOND_MS)
    assert not await _has(db, "user_1", "pro", NOW + SECOND_MS)


@pytest.mark.asyncio
async def test_cancellation_keeps_access_until_expiration(db):
    await dispatch(db, make_event())

    await dispatch(
        db,
        make_event("CANCELLATION", ts=NOW + DAY_MS, cancel_reason="UNSUBSCRIBE"),
    )

    assert await _has(db, "user_1", "premium", NOW + DAY_MS)
    subscription = await _subscription(db)
    assert subscription.cancel_reason == "UNSUBSCRIBE"
    assert subscription.auto_renew_status is False


@pytest.mark.asyncio
async def test_uncancellation_restores_auto_renew(db):
    await dispatch(db, make_event())
    await dispatch(db, make_event("CANCELLATION", ts=NOW + SECOND_MS, cancel_reason="UNSUBSCRIBE"))

    await dispatch(db, make_event("UNCANCELLATION", ts=NOW + 2 * SECOND_MS))

    subscription = await _subscription(db)
    assert subscription.cancel_reason is None
    assert subscription.auto_renew_status is True


@pytest.mark.asyncio
async def test_renewal_extends_entitlement(db):
    await dispatch(db, make_event())

    renewal_ts = NOW + 30 * DAY_MS
    await dispatch(
        db,
        make_event("RENEWAL", ts=renewal_ts, transaction_id="txn_2"),
        now=renewal_ts,
    )

    entitlement = await _entitlement(db)
    assert entitlement.expires_at_ms == renewal_ts + 30 * DAY_MS
    subscription = await _subscription(db)
    assert subscription.transaction_id == "txn_2"
    assert await _has(db, "user_1", "premium", NOW + 45 * DAY_MS)


@pytest.mark.asyncio
async def test_renewal_without_prior_purchase_creates_entitlement(db):
    await dispatch(db, make_event("RENEWAL"))

    assert await _entitlement(db) is not None
    assert await _has(db, "user_1", "premium", NOW)


@pytest.mark.asyncio
async def test_non_renewing_purchase_without_expiry_never_lapses(db):
    await dispatch(
        db,
        make_event(
            "NON_RENEWING_PURCHASE",
            entitlement_ids=["lifetime"],
            product_id="lifetime_unlock",
            expiration_at_ms=None,
            original_transaction_id="otx_life",
        ),
    )

    assert await _has(db, "user_1", "lifetime", NOW + 3650 * DAY_MS)


@pytest.mark.asyncio
async def test_sandbox_purchase_is_flagged(db):
    await dispatch(db, make_event(environment="SANDBOX"))

    entitlement = await _entitlement(db)
    assert entitlement.is_sandbox is True


@pytest.mark.asyncio
async def test_subscription_paused_records_resume_time(db):
    await dispatch(db, make_event(store="PLAY_STORE"))

    await dispatch(
        db,
        make_event(
            "SUBSCRIPTION_PAUSED",
            ts=NOW + SECOND_MS,
            store="PLAY_STORE",
            auto_resume_at_ms=NOW + 60 * DAY_MS,
        ),
    )

    subscription = await _subscription(db)
    assert subscription.auto_resume_at_ms == NOW + 60 * DAY_MS
    assert await _has(db, "user_1", "premium", NOW + DAY_MS)


@pytest.mark.asyncio
async def test_subscription_extended_moves_expiry(db):
    await dispatch(db, make_event())

    await dispatch(
        db,
        make_event("SUBSCRIPTION_EXTENDED", ts=NOW + SECOND_MS, expiration_at_ms=NOW + 40 * DAY_MS),
    )

    assert (await _entitlement(db)).expires_at_ms == NOW + 40 * DAY_MS
    assert (await _subscription(db)).expiration_at_ms == NOW + 40 * DAY_MS


@pytest.mark.asyncio
async def test_product_change_records_new_product(db):
    await dispatch(db, make_event())

    await dispatch(
        db,
        make_event("PRODUCT_CHANGE", ts=NOW + SECOND_MS, new_product_id="premium_yearly"),
    )

    subscription = await _subscription(db)
    assert subscription.new_product_id == "premium_yearly"
    assert subscription.product_id == "premium_monthly"


@pytest.mark.asyncio
async def test_temporary_entitlement_grant(db):
    await dispatch(
        db,
        make_event(
            "TEMPORARY_ENTITLEMENT_GRANT",
            expiration_at_ms=NOW + DAY_MS,
            original_transaction_id=None,
        ),
    )

    assert await _has(db, "user_1", "premium", NOW)
    assert await _subscription(db) is None


@pytest.mark.asyncio
async def test_refund_reversed_regrants_access(db):
    await dispatch(db, make_event())
    await dispatch(db, make_event("EXPIRATION", ts=NOW + SECOND_MS))
    assert not await _has(db, "user_1", "premium", NOW + SECOND_MS)

    await dispatch(db, make_event("REFUND_REVERSED", ts=NOW + 2 * SECOND_MS))

    assert await _has(db, "user_1", "premium", NOW + 2 * SECOND_MS)


@pytest.mark.asyncio
async def test_missing_subscription_fields_skip_subscription_only(db):
    await dispatch(db, make_event(original_transaction_id=None))

    assert await db.scalar(select(func.count(Subscription.id))) == 0
    assert await _has(db, "user_1", "premium", NOW)


# ---------------------------------------------------------------------------
# Billing issue grace period
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_billing_issue_keeps_access_past_expiry_until_renewal(db):
    expiry = NOW + DAY_MS
    await dispatch(db, make_event(expiration_at_ms=expiry))

    issue_ts = expiry + SECOND_MS
    await dispatch(
        db,
        make_event(
            "BILLING_ISSUE",
            ts=issue_ts,
            expiration_at_ms=expiry,
            grace_period_expiration_at_ms=expiry + 7 * DAY_MS,
        ),
        now=issue_ts,
    )

    later = expiry + 2 * DAY_MS
    assert await _has(db, "user_1", "premium", later)
    entitlement = await _entitlement(db)
    assert entitlement.billing_issue_detected_at_ms == issue_ts

    status = await SubscriptionService(db).get_grace_period_status("otx_1", now_ms=later)
    assert status.in_grace_period is True
    assert status.grace_period_expires_at_ms == expiry + 7 * DAY_MS

    renewal_ts = expiry + 3 * DAY_MS
    await dispatch(
        db,
        make_event(
            "RENEWAL",
            ts=renewal_ts,
            purchased_at_ms=renewal_ts,
            expiration_at_ms=renewal_ts + 30 * DAY_MS,
        ),
        now=renewal_ts,
    )

    entitlement = await _entitlement(db)
    assert entitlement.billing_issue_detected_at_ms is None
    assert entitlement.expires_at_ms == renewal_ts + 30 * DAY_MS
    subscription = await _subscription(db)
    assert subscription.billing_issue_detected_at_ms is None
    assert subscription.grace_period_expiration_at_ms is None
    assert await _has(db, "user_1", "premium", renewal_ts + 29 * DAY_MS)
    assert not await _has(db, "user_1", "premium", renewal_ts + 31 * DAY_MS)


@pytest.mark.asyncio
async def test_expiration_ends_billing_issue_grace(db):
    expiry = NOW + DAY_MS
    await dispatch(db, make_event(expiration_at_ms=expiry))
    await dispatch(
        db,
        make_event(
            "BILLING_ISSUE",
            ts=expiry + SECOND_MS,
            expiration_at_ms=expiry,
            grace_period_expiration_at_ms=expiry + 7 * DAY_MS,
        ),
    )
    assert await _has(db, "user_1", "premium", expiry + DAY_MS)

    await dispatch(
        db,
        make_event("EXPIRATION", ts=expiry + 7 * DAY_MS, expiration_at_ms=expiry),
    )

    assert not await _has(db, "user_1", "premium", expiry + 7 * DAY_MS)
    entitlement = await _entitlement(db)
    assert entitlement.billing_issue_detected_at_ms is None


# ---------------------------------------------------------------------------
# Out-of-order delivery
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_stale_event_does_not_undo_newer_state(db):
    await dispatch(db, make_event())
    await dispatch(
        db,
        make_event("EXPIRATION", ts=NOW + 2 * SECOND_MS, expiration_at_ms=NOW + 2 * SECOND_MS),
    )

    # Delivered late, but happened before the expiration
    await dispatch(
        db,
        make_event("RENEWAL", ts=NOW + SECOND_MS, expiration_at_ms=NOW + 60 * DAY_MS),
    )

    assert not await _has(db, "user_1", "premium", NOW + 3 * SECOND_MS)
    subscription = await _subscription(db)
    assert subscription.expiration_at_ms == NOW + 2 * SECOND_MS
    assert subscription.last_event_at_ms == NOW + 2 * SECOND_MS


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("newer_first", [True, False])
async def test_attributes_merge_by_updated_at(db, newer_first):
    newer = make_event(
        ts=NOW,
        subscriber_attributes={
            "$email": {"value": "new@example.com", "updated_at_ms": 200},
        },
    )
    older = make_event(
        "CANCELLATION",
        ts=NOW + SECOND_MS,
        subscriber_attributes={
            "$email": {"value": "old@example.com", "updated_at_ms": 100},
            "plan": {"value": "pro", "updated_at_ms": 100},
        },
    )

    for event in ([newer, older] if newer_first else [older, newer]):
        await dispatch(db, event)

    customer = await _customer(db)
    assert customer.attributes["__dollar__email"]["value"] == "new@example.com"
    assert customer.attributes["__dollar__email"]["updated_at_ms"] == 200
    assert customer.attributes["plan"]["value"] == "pro"


@pytest.mark.asyncio
async def test_aliases_accumulate_and_last_seen_only_moves_forward(db):
    await dispatch(db, make_event(ts=NOW + DAY_MS, aliases=["user_1", "$RCAnonymousID:abc"]))
    await dispatch(
        db,
        make_event("SUBSCRIBER_ALIAS", ts=NOW, aliases=["user_1", "legacy_id"]),
    )

    customer = await _customer(db)
    assert customer.aliases == ["user_1", "$RCAnonymousID:abc", "legacy_id"]
    assert customer.first_seen_at_ms == NOW + DAY_MS
    assert customer.last_seen_at_ms == NOW + DAY_MS


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------

def _transfer_event(ts: int, sources: list[str], destinations: list[str], **overrides):
    return make_event(
        "TRANSFER",
        ts=ts,
        app_user_id=None,
        original_app_user_id=None,
        aliases=None,
        transferred_from=sources,
        transferred_to=destinations,
        **overrides,
    )


@pytest.mark.asyncio
async def test_transfer_moves_entitlements_and_subscription(db):
    await dispatch(db, make_event())

    event = _transfer_event(NOW + SECOND_MS, ["user_1"], ["user_2"])
    await dispatch(db, event)

    source = await _entitlement(db, "user_1")
    destination = await _entitlement(db, "user_2")
    assert source.is_active is False
    assert destination.is_active is True
    assert destination.expires_at_ms == NOW + 30 * DAY_MS
    assert destination.product_id == "premium_monthly"

    assert not await _has(db, "user_1", "premium", NOW + SECOND_MS)
    assert await _has(db, "user_2", "premium", NOW + SECOND_MS)

    assert (await _subscription(db)).app_user_id == "user_2"
    assert await _customer(db, "user_2") is not None

    transfer = await db.scalar(select(Transfer).where(Transfer.event_id == event["id"]))
    assert transfer.transferred_from == ["user_1"]
    assert transfer.transferred_to == ["user_2"]
    assert transfer.timestamp_ms == NOW + SECOND_MS


@pytest.mark.asyncio
async def test_transfer_only_moves_listed_entitlements(db):
    await dispatch(db, make_event(entitlement_ids=["premium", "pro"]))

    await dispatch(
        db,
        _transfer_event(NOW + SECOND_MS, ["user_1"], ["user_2"], entitlement_ids=["pro"]),
    )

    assert await _has(db, "user_1", "premium", NOW + SECOND_MS)
    assert not await _has(db, "user_1", "pro", NOW + SECOND_MS)
    assert await _has(db, "user_2", "pro", NOW + SECOND_MS)
    assert await _entitlement(db, "user_2", "premium") is None


@pytest.mark.asyncio
async def test_transfer_to_several_destinations(db):
    await dispatch(db, make_event())

    await dispatch(db, _transfer_event(NOW + SECOND_MS, ["user_1"], ["user_2", "user_3"]))

    assert await _has(db, "user_2", "premium", NOW + SECOND_MS)
    assert await _has(db, "user_3", "premium", NOW + SECOND_MS)
    # Subscriptions follow the first destination
    assert (await _subscription(db)).app_user_id == "user_2"


@pytest.mark.asyncio
async def test_transfer_of_inactive_entitlements_grants_nothing(db):
    await dispatch(db, make_event())
    await dispatch(db, make_event("EXPIRATION", ts=NOW + SECOND_MS))

    await dispatch(db, _transfer_event(NOW + 2 * SECOND_MS, ["user_1"], ["user_2"]))

    assert await _entitlement(db, "user_2") is None


@pytest.mark.asyncio
async def test_transfer_older_than_source_state_moves_nothing(db):
    await dispatch(db, make_event(ts=NOW + 10 * SECOND_MS))

    await dispatch(db, _transfer_event(NOW, ["user_1"], ["user_2"]))

    assert await _has(db, "user_1", "premium", NOW + 10 * SECOND_MS)
    assert await _entitlement(db, "user_2") is None


@pytest.mark.asyncio
async def test_transfer_older_than_destination_state_keeps_source_access(db):
    await dispatch(db, make_event())
    user_2 = {
        "app_user_id": "user_2",
        "original_app_user_id": "user_2",
        "aliases": ["user_2"],
        "original_transaction_id": "otx_2",
    }
    await dispatch(db, make_event(**user_2))
    await dispatch(db, make_event("EXPIRATION", ts=NOW + 10 * SECOND_MS, **user_2))

    await dispatch(db, _transfer_event(NOW + 5 * SECOND_MS, ["user_1"], ["user_2"]))

    assert await _has(db, "user_1", "premium", NOW + 5 * SECOND_MS)
    assert (await _entitlement(db, "user_2")).is_active is False


@pytest.mark.asyncio
async def test_transfer_from_several_sources_grants_the_union(db):
    await dispatch(db, make_event())
    await dispatch(
        db,
        make_event(
            app_user_id="user_3",
            original_app_user_id="user_3",
            aliases=["user_3"],
            original_transaction_id="otx_3",
            entitlement_ids=["pro"],
        ),
    )

    await dispatch(
        db,
        _transfer_event(NOW + SECOND_MS, ["user_1", "user_3"], ["user_2"], entitlement_ids=None),
    )

    assert await _has(db, "user_2", "premium", NOW + SECOND_MS)
    assert await _has(db, "user_2", "pro", NOW + SECOND_MS)
    assert not await _has(db, "user_1", "premium", NOW + SECOND_MS)
    assert not await _has(db, "user_3", "pro", NOW + SECOND_MS)


@pytest.mark.asyncio
async def test_transfer_destination_that_is_also_a_source_keeps_its_copy(db):
    await dispatch(db, make_event())
    await dispatch(
        db,
        make_event(
            app_user_id="user_2",
            original_app_user_id="user_2",
            aliases=["user_2"],
            original_transaction_id="otx_2",
            entitlement_ids=["pro"],
        ),
    )

    await dispatch(
        db,
        _transfer_event(NOW + SECOND_MS, ["user_1", "user_2"], ["user_2"], entitlement_ids=None),
    )

    assert await _has(db, "user_2", "pro", NOW + SECOND_MS)
    assert await _has(db, "user_2", "premium", NOW + SECOND_MS)
    assert not await _has(db, "user_1", "premium", NOW + SECOND_MS)


@pytest.mark.asyncio
async def test_transfer_with_empty_entitlement_list_moves_nothing(db):
    await dispatch(db, make_event())

    await dispatch(
        db,
        _transfer_event(NOW + SECOND_MS, ["user_1"], ["user_2"], entitlement_ids=[]),
    )

    assert await _has(db, "user_1", "premium", NOW + SECOND_MS)
    assert await _entitlement(db, "user_2") is None
    assert (await _subscription(db)).app_user_id == "user_1"


# ---------------------------------------------------------------------------
# Invoices, virtual currency and experiments
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_invoice_issuance_is_recorded_once(db):
    await dispatch(db, make_event("INVOICE_ISSUANCE", invoice_id="inv_1", price=19.99, store="RC_BILLING"))
    await dispatch(db, make_event("INVOICE_ISSUANCE", invoice_id="inv_1", price=19.99, store="RC_BILLING"))

    invoices = (await db.scalars(select(Invoice))).all()
    assert len(invoices) == 1
    assert invoices[0].invoice_id == "inv_1"
    assert invoices[0].app_user_id == "user_1"
    assert invoices[0].price_usd == Decimal("19.99")
    assert invoices[0].issued_at_ms == NOW


@pytest.mark.asyncio
async def test_invoice_without_id_falls_back_to_event_id(db):
    event = make_event("INVOICE_ISSUANCE")

    await dispatch(db, event)

    assert await db.scalar(select(Invoice).where(Invoice.invoice_id == event["id"])) is not None


def _currency_event(transaction_id: str, amount: int, ts: int = NOW):
    return make_event(
        "VIRTUAL_CURRENCY_TRANSACTION",
        ts=ts,
        virtual_currency_transaction_id=transaction_id,
        source="in_app_purchase",
        adjustments=[{"amount": amount, "currency": {"code": "GEMS", "name": "Gems"}}],
    )


@pytest.mark.asyncio
async def test_virtual_currency_transactions_apply_once(db):
    await dispatch(db, _currency_event("vctx_1", 100))
    # Redelivered under a new event id
    await dispatch(db, _currency_event("vctx_1", 100))
    await dispatch(db, _currency_event("vctx_2", -30, ts=NOW + SECOND_MS))

    balance = await db.scalar(
        select(VirtualCurrencyBalance).where(
            VirtualCurrencyBalance.app_user_id == "user_1",
            VirtualCurrencyBalance.currency_code == "GEMS",
        )
    )
    assert balance.balance == 70
    assert balance.currency_name == "Gems"

    ledger = (
        await db.scalars(
            select(VirtualCurrencyTransaction).order_by(VirtualCurrencyTransaction.timestamp_ms)
        )
    ).all()
    assert [(t.transaction_id, t.amount) for t in ledger] == [("vctx_1", 100), ("vctx_2", -30)]
    assert ledger[0].source == "in_app_purchase"


@pytest.mark.asyncio
async def test_experiments_from_purchase_and_enrollment(db):
    await dispatch(
        db,
        make_event(
            experiments=[
                {"experiment_id": "exp_1", "experiment_variant": "b", "enrolled_at_ms": NOW - DAY_MS},
            ]
        ),
    )
    await dispatch(
        db,
        make_event(
            "EXPERIMENT_ENROLLMENT",
            ts=NOW + SECOND_MS,
            experiment_id="exp_2",
            experiment_variant="a",
            offering_id="offering_default",
            experiment_enrolled_at_ms=NOW,
        ),
    )

    experiments = (
        await db.scalars(select(Experiment).order_by(Experiment.experiment_id))
    ).all()
    assert [(e.experiment_id, e.variant) for e in experiments] == [("exp_1", "b"), ("exp_2", "a")]
    assert experiments[0].enrolled_at_ms == NOW - DAY_MS
    assert experiments[1].offering_id == "offering_default"


@pytest.mark.asyncio
async def test_experiment_variant_change_updates_row(db):
    for variant in ("a", "b"):
        await dispatch(
            db,
            make_event(
                "EXPERIMENT_ENROLLMENT",
                experiment_id="exp_1",
                experiment_variant=variant,
            ),
        )

    experiments = (await db.scalars(select(Experiment))).all()
    assert len(experiments) == 1
    assert experiments[0].variant == "b"


@pytest.mark.asyncio
async def test_older_enrollment_for_same_variant_leaves_row_unchanged(db):
    for enrolled_at_ms, offering_id in ((NOW, "offering_new"), (NOW - DAY_MS, "offering_old")):
        await dispatch(
            db,
            make_event(
                "EXPERIMENT_ENROLLMENT",
                experiment_id="exp_1",
                experiment_variant="a",
                experiment_enrolled_at_ms=enrolled_at_ms,
                offering_id=offering_id,
            ),
        )

    experiment = await db.scalar(select(Experiment))
    assert experiment.variant == "a"
    assert experiment.enrolled_at_ms == NOW
    assert experiment.offering_id == "offering_new"
