"""
RevenueCat Event Handlers
=========================

Type-specific mutations applied for each RevenueCat webhook event.

Handles:
- Customer upserts (aliases, per-key attribute merge, first/last seen)
- Subscription upserts keyed by original transaction id
- Entitlement grant / extend / revoke / billing-issue marking
- Transfers between app user ids
- Experiment enrollments, invoices and virtual currency ledgers

Every handler runs inside the dispatcher's savepoint on a single session and
never commits. The session is created with ``autoflush=False``, so every
write is flushed explicitly before the next lookup.
"""

import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from revenuecat_mirror.models.billing import (
    Invoice,
    Transfer,
    VirtualCurrencyBalance,
    VirtualCurrencyTransaction,
)
from revenuecat_mirror.models.customer import Customer, Experiment
from revenuecat_mirror.models.entitlement import Entitlement
from revenuecat_mirror.models.subscription import Subscription
from revenuecat_mirror.schemas.webhook import (
    Environment,
    RevenueCatEventType,
    RevenueCatWebhookEvent,
)

logger = logging.getLogger(__name__)

# Fields a subscription row cannot exist without
SUBSCRIPTION_REQUIRED_FIELDS = (
    "app_user_id",
    "original_transaction_id",
    "product_id",
    "store",
    "environment",
    "period_type",
)


def _is_stale(last_event_at_ms: Optional[int], event_ts: int) -> bool:
    return last_event_at_ms is not None and event_ts < last_event_at_ms


class EventHandlers:
    """
    Applies RevenueCat events to the entity store.

    One instance per webhook delivery; ``now_ms`` is the processing clock,
    used wherever the event carries no timestamp of its own.
    """

    def __init__(self, db: AsyncSession, now_ms: int):
        self.db = db
        self.now_ms = now_ms

    def _event_ts(self, event: RevenueCatWebhookEvent) -> int:
        if event.event_timestamp_ms is not None:
            return event.event_timestamp_ms
        return self.now_ms

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    async def _get_customer(self, app_user_id: str) -> Optional[Customer]:
        result = await self.db.execute(
            select(Customer).where(Customer.app_user_id == app_user_id)
        )
        return result.scalar_one_or_none()

    async def _touch_customer(
        self,
        app_user_id: str,
        event_ts: int,
        original_app_user_id: Optional[str] = None,
        aliases: Iterable[str] = (),
        attributes: Optional[dict[str, Any]] = None,
    ) -> Customer:
        """
        Create or update a customer.

        ``first_seen_at_ms`` is only written on insert; ``last_seen_at_ms``
        only moves forward. Aliases merge as an ordered set-union and each
        attribute key is replaced only by a strictly newer ``updated_at_ms``.
        """
        customer = await self._get_customer(app_user_id)

        if customer is None:
            merged_attributes = self._merge_attributes({}, attributes)
            customer = Customer(
                app_user_id=app_user_id,
                original_app_user_id=original_app_user_id or app_user_id,
                aliases=list(dict.fromkeys(aliases)),
                first_seen_at_ms=event_ts,
                last_seen_at_ms=event_ts,
                attributes=merged_attributes or None,
            )
            self.db.add(customer)
        else:
            if original_app_user_id:
                customer.original_app_user_id = original_app_user_id
            customer.aliases = list(dict.fromkeys([*(customer.aliases or []), *aliases]))
            customer.last_seen_at_ms = max(customer.last_seen_at_ms or 0, event_ts)
            if attributes:
                merged_attributes = self._merge_attributes(customer.attributes or {}, attributes)
                customer.attributes = merged_attributes or None

        await self.db.flush()
        return customer

    @staticmethod
    def _merge_attributes(
        stored: dict[str, Any],
        incoming: Optional[dict[str, Any]],
    ) -> dict[str, Any]:
        # New dict so the JSON column sees a changed value
        merged = dict(stored)
        for key, attr in (incoming or {}).items():
            current = merged.get(key)
            if current is None or attr.updated_at_ms > (current.get("updated_at_ms") or 0):
                merged[key] = attr.model_dump()
        return merged

    async def _upsert_customer(self, event: RevenueCatWebhookEvent) -> None:
        # TRANSFER events carry no app_user_id
        if not event.app_user_id:
            return

        await self._touch_customer(
            event.app_user_id,
            self._event_ts(event),
            original_app_user_id=event.original_app_user_id or event.app_user_id,
            aliases=event.aliases,
            attributes=event.subscriber_attributes,
        )

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def _get_subscription(self, original_transaction_id: str) -> Optional[Subscription]:
        result = await self.db.execute(
            select(Subscription).where(
                Subscription.original_transaction_id == original_transaction_id
            )
        )
        return result.scalar_one_or_none()

    async def _upsert_subscription(
        self,
        event: RevenueCatWebhookEvent,
        **overrides: Any,
    ) -> Optional[Subscription]:
        """
        Overwrite a subscription's base fields from the event, then apply
        per-type ``overrides`` (cancel_reason, auto_renew_status, ...).

        Fields only set through overrides keep their stored value otherwise.
        """
        missing = [name for name in SUBSCRIPTION_REQUIRED_FIELDS if not getattr(event, name)]
        if missing:
            logger.warning(
                "Skipping subscription write for event %s (%s): missing %s",
                event.id,
                event.type,
                ", ".join(missing),
            )
            return None

        event_ts = self._event_ts(event)
        otid = event.original_transaction_id
        subscription = await self._get_subscription(otid)

        if subscription is not None and _is_stale(subscription.last_event_at_ms, event_ts):
            logger.info(
                "Ignoring stale %s for subscription %s (event %d < last %d)",
                event.type,
                otid,
                event_ts,
                subscription.last_event_at_ms,
            )
            return subscription

        values = {
            "app_user_id": event.app_user_id,
            "product_id": event.product_id,
            "entitlement_ids": event.entitlement_ids,
            "store": event.store,
            "environment": event.environment,
            "period_type": event.period_type,
            "purchased_at_ms": (
                event.purchased_at_ms if event.purchased_at_ms is not None else self.now_ms
            ),
            "expiration_at_ms": event.expiration_at_ms,
            "transaction_id": event.transaction_id or otid,
            "is_family_share": event.is_family_share or False,
            "is_trial_conversion": event.is_trial_conversion,
            "price_usd": event.price,
            "currency": event.currency,
            "price_in_purchased_currency": event.price_in_purchased_currency,
            "country_code": event.country_code,
            "tax_percentage": event.tax_percentage,
            "commission_percentage": event.commission_percentage,
            "offer_code": event.offer_code,
            "presented_offering_id": event.presented_offering_id,
            "renewal_number": event.renewal_number,
            "new_product_id": event.new_product_id,
            **overrides,
            "last_event_at_ms": event_ts,
        }

        if subscription is None:
            subscription = Subscription(original_transaction_id=otid, **values)
            self.db.add(subscription)
        else:
            for field, value in values.items():
                setattr(subscription, field, value)

        await self.db.flush()
        return subscription

    # -------------------------------------------------------------------------
    # Entitlements
    # -------------------------------------------------------------------------

    async def _get_entitlement(self, app_user_id: str, entitlement_id: str) -> Optional[Entitlement]:
        result = await self.db.execute(
            select(Entitlement).where(
                Entitlement.app_user_id == app_user_id,
                Entitlement.entitlement_id == entitlement_id,
            )
        )
        return result.scalar_one_or_none()

    async def _list_entitlements(self, app_user_id: str) -> list[Entitlement]:
        result = await self.db.execute(
            select(Entitlement)
            .where(Entitlement.app_user_id == app_user_id)
            .order_by(Entitlement.entitlement_id)
        )
        return list(result.scalars().all())

    async def _grant_one(
        self,
        app_user_id: str,
        entitlement_id: str,
        event_ts: int,
        product_id: Optional[str],
        expires_at_ms: Optional[int],
        purchased_at_ms: Optional[int],
        store: Optional[str],
        is_sandbox: bool,
        billing_issue_detected_at_ms: Optional[int] = None,
    ) -> None:
        entitlement = await self._get_entitlement(app_user_id, entitlement_id)

        if entitlement is None:
            self.db.add(
                Entitlement(
                    app_user_id=app_user_id,
                    entitlement_id=entitlement_id,
                    product_id=product_id,
                    is_active=True,
                    expires_at_ms=expires_at_ms,
                    purchased_at_ms=purchased_at_ms,
                    store=store,
                    is_sandbox=is_sandbox,
                    billing_issue_detected_at_ms=billing_issue_detected_at_ms,
                    last_event_at_ms=event_ts,
                )
            )
        elif _is_stale(entitlement.last_event_at_ms, event_ts):
            return
        else:
            entitlement.is_active = True
            entitlement.product_id = product_id
            entitlement.expires_at_ms = expires_at_ms
            entitlement.purchased_at_ms = purchased_at_ms
            entitlement.store = store
            entitlement.is_sandbox = is_sandbox
            entitlement.billing_issue_detected_at_ms = billing_issue_detected_at_ms
            entitlement.last_event_at_ms = event_ts

        await self.db.flush()

    async def _grant_entitlements(self, event: RevenueCatWebhookEvent) -> None:
        if not event.entitlement_ids or not event.app_user_id:
            return

        event_ts = self._event_ts(event)
        for entitlement_id in event.entitlement_ids:
            await self._grant_one(
                event.app_user_id,
                entitlement_id,
                event_ts,
                product_id=event.product_id,
                expires_at_ms=event.expiration_at_ms,
                purchased_at_ms=event.purchased_at_ms,
                store=event.store,
                is_sandbox=event.environment == Environment.SANDBOX.value,
            )

    async def _extend_entitlements(self, event: RevenueCatWebhookEvent) -> None:
        """Re-activate with the new expiry; unknown entitlements are created."""
        if not event.entitlement_ids or not event.app_user_id:
            return

        event_ts = self._event_ts(event)
        for entitlement_id in event.entitlement_ids:
            entitlement = await self._get_entitlement(event.app_user_id, entitlement_id)

            if entitlement is None:
                await self._grant_one(
                    event.app_user_id,
                    entitlement_id,
                    event_ts,
                    product_id=event.product_id,
                    expires_at_ms=event.expiration_at_ms,
                    purchased_at_ms=event.purchased_at_ms,
                    store=event.store,
                    is_sandbox=event.environment == Environment.SANDBOX.value,
                )
                continue

            if _is_stale(entitlement.last_event_at_ms, event_ts):
                continue

            entitlement.is_active = True
            entitlement.expires_at_ms = event.expiration_at_ms
            entitlement.billing_issue_detected_at_ms = None
            entitlement.last_event_at_ms = event_ts

        await self.db.flush()

    async def _revoke_entitlements(
        self,
        app_user_id: str,
        event_ts: int,
        entitlement_ids: Optional[Iterable[str]] = None,
    ) -> None:
        """Soft-revoke the listed entitlements, or all of them when None."""
        wanted = set(entitlement_ids) if entitlement_ids is not None else None

        for entitlement in await self._list_entitlements(app_user_id):
            if wanted is not None and entitlement.entitlement_id not in wanted:
                continue
            if _is_stale(entitlement.last_event_at_ms, event_ts):
                continue

            entitlement.is_active = False
            entitlement.billing_issue_detected_at_ms = None
            entitlement.last_event_at_ms = event_ts

        await self.db.flush()

    async def _mark_billing_issue(self, event: RevenueCatWebhookEvent) -> None:
        """Flag listed entitlements; ``is_active`` is left as is."""
        if not event.entitlement_ids or not event.app_user_id:
            return

        event_ts = self._event_ts(event)
        for entitlement_id in event.entitlement_ids:
            entitlement = await self._get_entitlement(event.app_user_id, entitlement_id)
            if entitlement is None or _is_stale(entitlement.last_event_at_ms, event_ts):
                continue

            entitlement.billing_issue_detected_at_ms = event_ts
            entitlement.last_event_at_ms = event_ts

        await self.db.flush()

    # -------------------------------------------------------------------------
    # Experiments
    # -------------------------------------------------------------------------

    async def _upsert_experiment(
        self,
        app_user_id: str,
        experiment_id: str,
        variant: str,
        event_ts: int,
        enrolled_at_ms: Optional[int] = None,
        offering_id: Optional[str] = None,
    ) -> None:
        result = await self.db.execute(
            select(Experiment).where(
                Experiment.app_user_id == app_user_id,
                Experiment.experiment_id == experiment_id,
            )
        )
        experiment = result.scalar_one_or_none()

        if experiment is None:
            self.db.add(
                Experiment(
                    app_user_id=app_user_id,
                    experiment_id=experiment_id,
                    variant=variant,
                    offering_id=offering_id,
                    enrolled_at_ms=enrolled_at_ms if enrolled_at_ms is not None else event_ts,
                )
            )
        elif experiment.variant != variant or (
            enrolled_at_ms is not None and enrolled_at_ms > experiment.enrolled_at_ms
        ):
            experiment.variant = variant
            if enrolled_at_ms is not None:
                experiment.enrolled_at_ms = enrolled_at_ms
            if offering_id is not None:
                experiment.offering_id = offering_id
        else:
            return

        await self.db.flush()

    async def _upsert_experiments(self, event: RevenueCatWebhookEvent) -> None:
        if not event.experiments or not event.app_user_id:
            return

        event_ts = self._event_ts(event)
        for item in event.experiments:
            await self._upsert_experiment(
                event.app_user_id,
                item.experiment_id,
                item.experiment_variant,
                event_ts,
                enrolled_at_ms=item.enrolled_at_ms,
            )

    # -------------------------------------------------------------------------
    # Event Handlers
    # -------------------------------------------------------------------------

    async def handle_initial_purchase(self, event: RevenueCatWebhookEvent) -> None:
        """New subscription started: customer, subscription, grant entitlements."""
        await self._upsert_customer(event)
        await self._upsert_subscription(event)
        await self._grant_entitlements(event)
        await self._upsert_experiments(event)

    async def handle_non_renewing_purchase(self, event: RevenueCatWebhookEvent) -> None:
        """One-time purchase or consumable."""
        await self._upsert_customer(event)
        await self._upsert_subscription(event)
        await self._grant_entitlements(event)
        await self._upsert_experiments(event)

    async def handle_renewal(self, event: RevenueCatWebhookEvent) -> None:
        """Renewal resolves any outstanding billing issue."""
        await self._upsert_customer(event)
        await self._upsert_subscription(
            event,
            billing_issue_detected_at_ms=None,
            grace_period_expiration_at_ms=None,
        )
        await self._extend_entitlements(event)
        await self._upsert_experiments(event)

    async def handle_cancellation(self, event: RevenueCatWebhookEvent) -> None:
        """Will not renew. Entitlements stay active until EXPIRATION."""
        await self._upsert_customer(event)
        await self._upsert_subscription(
            event,
            cancel_reason=event.cancel_reason,
            auto_renew_status=False,
        )

    async def handle_uncancellation(self, event: RevenueCatWebhookEvent) -> None:
        await self._upsert_customer(event)
        await self._upsert_subscription(
            event,
            cancel_reason=None,
            auto_renew_status=True,
        )

    async def handle_expiration(self, event: RevenueCatWebhookEvent) -> None:
        """Subscription lapsed: revoke listed entitlements (all when none listed)."""
        await self._upsert_customer(event)
        await self._upsert_subscription(
            event,
            expiration_reason=event.expiration_reason,
        )
        if event.app_user_id:
            await self._revoke_entitlements(
                event.app_user_id,
                self._event_ts(event),
                event.entitlement_ids,
            )

    async def handle_billing_issue(self, event: RevenueCatWebhookEvent) -> None:
        """Payment failed, grace period started. Entitlements are kept."""
        await self._upsert_customer(event)
        await self._upsert_subscription(
            event,
            billing_issue_detected_at_ms=self._event_ts(event),
            grace_period_expiration_at_ms=event.grace_period_expiration_at_ms,
        )
        await self._mark_billing_issue(event)

    async def handle_subscription_paused(self, event: RevenueCatWebhookEvent) -> None:
        """Play Store pause; access continues until EXPIRATION."""
        await self._upsert_customer(event)
        await self._upsert_subscription(
            event,
            auto_resume_at_ms=event.auto_resume_at_ms,
        )

    async def handle_subscription_extended(self, event: RevenueCatWebhookEvent) -> None:
        await self._upsert_customer(event)
        await self._upsert_subscription(event)
        await self._extend_entitlements(event)

    async def handle_product_change(self, event: RevenueCatWebhookEvent) -> None:
        """Informational; entitlements follow with the next RENEWAL."""
        await self._upsert_customer(event)
        await self._upsert_subscription(event)

    async def handle_transfer(self, event: RevenueCatWebhookEvent) -> None:
        """
        Move entitlements between app user ids.

        TRANSFER events carry ``transferred_from`` / ``transferred_to`` instead
        of ``app_user_id``. Every source's matching active entitlements are
        snapshotted first, revoked on the source and granted to every
        destination, so with several sources and destinations each
        destination ends up with the union of the sources' entitlements.
        Matching subscriptions move to the first destination.

        Only entitlements that can land somewhere move: a source row newer
        than the event is left in place, and an entitlement whose rows are
        newer than the event on every destination stays with its source.
        An empty ``entitlement_ids`` list matches nothing.
        """
        event_ts = self._event_ts(event)
        sources = list(dict.fromkeys(event.transferred_from or []))
        destinations = list(dict.fromkeys(event.transferred_to or []))
        wanted = set(event.entitlement_ids) if event.entitlement_ids is not None else None

        snapshots: dict[str, list[dict[str, Any]]] = {}
        for source in sources:
            snapshots[source] = []
            for entitlement in await self._list_entitlements(source):
                if not entitlement.is_active:
                    continue
                if wanted is not None and entitlement.entitlement_id not in wanted:
                    continue
                if _is_stale(entitlement.last_event_at_ms, event_ts):
                    continue
                if not await self._accepts_transfer(destinations, entitlement.entitlement_id, event_ts):
                    continue
                snapshots[source].append(
                    {
                        "entitlement_id": entitlement.entitlement_id,
                        "product_id": entitlement.product_id,
                        "expires_at_ms": entitlement.expires_at_ms,
                        "purchased_at_ms": entitlement.purchased_at_ms,
                        "store": entitlement.store,
                        "is_sandbox": entitlement.is_sandbox,
                        "billing_issue_detected_at_ms": entitlement.billing_issue_detected_at_ms,
                    }
                )

        for source in sources:
            moved = [snapshot["entitlement_id"] for snapshot in snapshots[source]]
            if moved:
                await self._revoke_entitlements(source, event_ts, moved)

        for destination in destinations:
            await self._touch_customer(destination, event_ts)
            for source in sources:
                for snapshot in snapshots[source]:
                    await self._grant_one(destination, event_ts=event_ts, **snapshot)

        if destinations:
            await self._move_subscriptions(sources, destinations[0], wanted, event_ts)

        self.db.add(
            Transfer(
                event_id=event.id,
                transferred_from=sources,
                transferred_to=destinations,
                entitlement_ids=event.entitlement_ids,
                timestamp_ms=event_ts,
            )
        )
        await self.db.flush()

        logger.info(
            "Transferred %d entitlement(s) from %s to %s",
            sum(len(items) for items in snapshots.values()),
            sources,
            destinations,
        )

    async def _accepts_transfer(
        self,
        destinations: list[str],
        entitlement_id: str,
        event_ts: int,
    ) -> bool:
        """True when at least one destination row can take the copy."""
        for destination in destinations:
            entitlement = await self._get_entitlement(destination, entitlement_id)
            if entitlement is None or not _is_stale(entitlement.last_event_at_ms, event_ts):
                return True
        return False

    async def _move_subscriptions(
        self,
        sources: list[str],
        destination: str,
        wanted: Optional[set[str]],
        event_ts: int,
    ) -> None:
        if not sources:
            return

        result = await self.db.execute(
            select(Subscription).where(Subscription.app_user_id.in_(sources))
        )
        for subscription in result.scalars().all():
            if wanted is not None and not wanted.intersection(subscription.entitlement_ids or []):
                continue
            if _is_stale(subscription.last_event_at_ms, event_ts):
                continue
            subscription.app_user_id = destination
            subscription.last_event_at_ms = event_ts

        await self.db.flush()

    async def handle_temporary_entitlement_grant(self, event: RevenueCatWebhookEvent) -> None:
        """Store outage compensation."""
        await self._upsert_customer(event)
        await self._grant_entitlements(event)

    async def handle_refund_reversed(self, event: RevenueCatWebhookEvent) -> None:
        await self._upsert_customer(event)
        await self._upsert_subscription(event)
        await self._grant_entitlements(event)

    async def handle_test(self, event: RevenueCatWebhookEvent) -> None:
        """Dashboard test event; logged only."""
        return None

    async def handle_invoice_issuance(self, event: RevenueCatWebhookEvent) -> None:
        """Record a web billing invoice once per invoice id."""
        await self._upsert_customer(event)

        if not event.app_user_id:
            logger.warning("Invoice event %s has no app_user_id, skipping invoice", event.id)
            return

        invoice_id = event.invoice_id or event.id
        result = await self.db.execute(select(Invoice).where(Invoice.invoice_id == invoice_id))
        if result.scalar_one_or_none() is not None:
            return

        self.db.add(
            Invoice(
                invoice_id=invoice_id,
                app_user_id=event.app_user_id,
                product_id=event.product_id,
                store=event.store,
                environment=event.environment,
                price_usd=event.price,
                currency=event.currency,
                price_in_purchased_currency=event.price_in_purchased_currency,
                issued_at_ms=self._event_ts(event),
            )
        )
        await self.db.flush()

    async def handle_virtual_currency_transaction(self, event: RevenueCatWebhookEvent) -> None:
        """
        Apply balance adjustments.

        Each ``(transaction_id, currency_code)`` pair is applied at most once,
        so a redelivery under a new event id does not double-count.
        """
        await self._upsert_customer(event)

        if not event.app_user_id or not event.adjustments:
            return

        event_ts = self._event_ts(event)
        transaction_id = event.virtual_currency_transaction_id or event.id

        for adjustment in event.adjustments:
            code = adjustment.currency.code

            result = await self.db.execute(
                select(VirtualCurrencyTransaction.id).where(
                    VirtualCurrencyTransaction.transaction_id == transaction_id,
                    VirtualCurrencyTransaction.currency_code == code,
                )
            )
            if result.first() is not None:
                logger.info(
                    "Virtual currency transaction %s/%s already applied",
                    transaction_id,
                    code,
                )
                continue

            result = await self.db.execute(
                select(VirtualCurrencyBalance).where(
                    VirtualCurrencyBalance.app_user_id == event.app_user_id,
                    VirtualCurrencyBalance.currency_code == code,
                )
            )
            balance = result.scalar_one_or_none()

            if balance is None:
                balance = VirtualCurrencyBalance(
                    app_user_id=event.app_user_id,
                    currency_code=code,
                    currency_name=adjustment.currency.name,
                    balance=adjustment.amount,
                )
                self.db.add(balance)
            else:
                balance.balance = balance.balance + adjustment.amount
                if adjustment.currency.name:
                    balance.currency_name = adjustment.currency.name

            self.db.add(
                VirtualCurrencyTransaction(
                    transaction_id=transaction_id,
                    app_user_id=event.app_user_id,
                    currency_code=code,
                    amount=adjustment.amount,
                    source=event.source,
                    product_id=event.product_id,
                    environment=event.environment,
                    timestamp_ms=event_ts,
                )
            )
            await self.db.flush()

    async def handle_experiment_enrollment(self, event: RevenueCatWebhookEvent) -> None:
        """Experiment data arrives in top-level ``experiment_*`` fields."""
        await self._upsert_customer(event)

        if event.app_user_id and event.experiment_id and event.experiment_variant:
            await self._upsert_experiment(
                event.app_user_id,
                event.experiment_id,
                event.experiment_variant,
                self._event_ts(event),
                enrolled_at_ms=event.experiment_enrolled_at_ms,
                offering_id=event.offering_id,
            )

    async def handle_subscriber_alias(self, event: RevenueCatWebhookEvent) -> None:
        """Deprecated event type; merges aliases through the customer upsert."""
        await self._upsert_customer(event)


EventHandler = Callable[[EventHandlers, RevenueCatWebhookEvent], Awaitable[None]]

# Routing table: one entry per RevenueCatEventType
EVENT_HANDLERS: dict[RevenueCatEventType, EventHandler] = {
    RevenueCatEventType.INITIAL_PURCHASE: EventHandlers.handle_initial_purchase,
    RevenueCatEventType.RENEWAL: EventHandlers.handle_renewal,
    RevenueCatEventType.CANCELLATION: EventHandlers.handle_cancellation,
    RevenueCatEventType.UNCANCELLATION: EventHandlers.handle_uncancellation,
    RevenueCatEventType.EXPIRATION: EventHandlers.handle_expiration,
    RevenueCatEventType.BILLING_ISSUE: EventHandlers.handle_billing_issue,
    RevenueCatEventType.SUBSCRIPTION_PAUSED: EventHandlers.handle_subscription_paused,
    RevenueCatEventType.SUBSCRIPTION_EXTENDED: EventHandlers.handle_subscription_extended,
    RevenueCatEventType.PRODUCT_CHANGE: EventHandlers.handle_product_change,
    RevenueCatEventType.NON_RENEWING_PURCHASE: EventHandlers.handle_non_renewing_purchase,
    RevenueCatEventType.TRANSFER: EventHandlers.handle_transfer,
    RevenueCatEventType.TEMPORARY_ENTITLEMENT_GRANT: EventHandlers.handle_temporary_entitlement_grant,
    RevenueCatEventType.REFUND_REVERSED: EventHandlers.handle_refund_reversed,
    RevenueCatEventType.TEST: EventHandlers.handle_test,
    RevenueCatEventType.INVOICE_ISSUANCE: EventHandlers.handle_invoice_issuance,
    RevenueCatEventType.VIRTUAL_CURRENCY_TRANSACTION: EventHandlers.handle_virtual_currency_transaction,
    RevenueCatEventType.EXPERIMENT_ENROLLMENT: EventHandlers.handle_experiment_enrollment,
    RevenueCatEventType.SUBSCRIBER_ALIAS: EventHandlers.handle_subscriber_alias,
}
