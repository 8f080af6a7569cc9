"""
Subscription Service
====================

Read operations over mirrored subscriptions.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from revenuecat_mirror.models.subscription import Subscription
from revenuecat_mirror.schemas.subscription import GracePeriodStatus
from revenuecat_mirror.utils.helpers import now_ms as current_ms


class SubscriptionService:
    """Service for subscription read operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_all(self, app_user_id: str) -> list[Subscription]:
        """All subscriptions of a user, most recent purchase first."""
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.app_user_id == app_user_id)
            .order_by(Subscription.purchased_at_ms.desc())
        )
        return list(result.scalars().all())

    async def list_active(
        self,
        app_user_id: str,
        now_ms: Optional[int] = None,
    ) -> list[Subscription]:
        """Subscriptions within their term or grace period at ``now_ms``."""
        now = now_ms if now_ms is not None else current_ms()
        return [
            subscription
            for subscription in await self.list_all(app_user_id)
            if subscription.is_active_at(now)
        ]

    async def get_by_original_transaction(
        self,
        original_transaction_id: str,
    ) -> Optional[Subscription]:
        result = await self.db.execute(
            select(Subscription).where(
                Subscription.original_transaction_id == original_transaction_id
            )
        )
        return result.scalar_one_or_none()

    async def get_grace_period_status(
        self,
        original_transaction_id: str,
        now_ms: Optional[int] = None,
    ) -> Optional[GracePeriodStatus]:
        """
        Grace period state of a subscription.

        Returns:
            GracePeriodStatus, or None if the subscription is unknown
        """
        subscription = await self.get_by_original_transaction(original_transaction_id)
        if subscription is None:
            return None

        now = now_ms if now_ms is not None else current_ms()
        return GracePeriodStatus(
            in_grace_period=subscription.is_in_grace_period_at(now),
            grace_period_expires_at_ms=subscription.grace_period_expiration_at_ms,
            billing_issue_detected_at_ms=subscription.billing_issue_detected_at_ms,
            expiration_at_ms=subscription.expiration_at_ms,
        )
