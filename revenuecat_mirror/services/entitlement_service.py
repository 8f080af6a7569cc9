"""
Entitlement Service
===================

Entitlement checks and listings.

Active-ness is never stored; it is recomputed from the row and the current
time on every read, so expired entitlements drop out without a sweeper.
Rows may come from the Redis read cache, which holds raw column values only.
"""

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from revenuecat_mirror.config import settings
from revenuecat_mirror.models.entitlement import Entitlement, is_entitlement_active
from revenuecat_mirror.services.cache import CacheKeys, CacheManager
from revenuecat_mirror.utils.helpers import now_ms as current_ms

logger = logging.getLogger(__name__)

CACHED_FIELDS = (
    "app_user_id",
    "entitlement_id",
    "product_id",
    "is_active",
    "expires_at_ms",
    "purchased_at_ms",
    "store",
    "is_sandbox",
    "billing_issue_detected_at_ms",
)


def _row_active(row: dict[str, Any], now_ms: int) -> bool:
    return is_entitlement_active(
        row["is_active"],
        row.get("expires_at_ms"),
        row.get("billing_issue_detected_at_ms"),
        now_ms,
    )


class EntitlementService:
    """Service for entitlement read operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load_rows(self, app_user_id: str) -> list[dict[str, Any]]:
        """Raw entitlement rows for a user, cache first."""
        key = CacheKeys.entitlements(app_user_id)

        cached = await CacheManager.get(key)
        if cached is not None:
            return cached

        result = await self.db.execute(
            select(Entitlement)
            .where(Entitlement.app_user_id == app_user_id)
            .order_by(Entitlement.entitlement_id)
        )
        rows = [
            {field: getattr(entitlement, field) for field in CACHED_FIELDS}
            for entitlement in result.scalars().all()
        ]

        await CacheManager.set(key, rows, ttl=settings.ENTITLEMENT_CACHE_TTL_SECONDS)
        return rows

    async def check(
        self,
        app_user_id: str,
        entitlement_id: str,
        now_ms: Optional[int] = None,
    ) -> bool:
        """
        Check whether a user currently has an entitlement.

        Args:
            app_user_id: RevenueCat app user id
            entitlement_id: Entitlement identifier, e.g. ``premium``
            now_ms: Evaluation time (defaults to the wall clock)

        Returns:
            True if an effectively active row exists
        """
        now = now_ms if now_ms is not None else current_ms()
        for row in await self._load_rows(app_user_id):
            if row["entitlement_id"] == entitlement_id:
                return _row_active(row, now)
        return False

    async def list_all(
        self,
        app_user_id: str,
        now_ms: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """All entitlement rows, each annotated with ``is_currently_active``."""
        now = now_ms if now_ms is not None else current_ms()
        return [
            {**row, "is_currently_active": _row_active(row, now)}
            for row in await self._load_rows(app_user_id)
        ]

    async def list_active(
        self,
        app_user_id: str,
        now_ms: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Entitlements that grant access at ``now_ms``."""
        return [
            row
            for row in await self.list_all(app_user_id, now_ms=now_ms)
            if row["is_currently_active"]
        ]
