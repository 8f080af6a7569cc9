"""
Webhook Event Service
=====================

Queries over the webhook event log (30-day retention).
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from revenuecat_mirror.models.webhook import WebhookEvent, WebhookEventStatus

DEFAULT_LIMIT = 100


class WebhookEventService:
    """Service for webhook event log queries. Lists are newest first."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_event_id(self, event_id: str) -> Optional[WebhookEvent]:
        result = await self.db.execute(
            select(WebhookEvent).where(WebhookEvent.event_id == event_id)
        )
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        app_user_id: str,
        limit: int = DEFAULT_LIMIT,
    ) -> list[WebhookEvent]:
        result = await self.db.execute(
            select(WebhookEvent)
            .where(WebhookEvent.app_user_id == app_user_id)
            .order_by(WebhookEvent.processed_at_ms.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_by_type(
        self,
        event_type: str,
        limit: int = DEFAULT_LIMIT,
    ) -> list[WebhookEvent]:
        result = await self.db.execute(
            select(WebhookEvent)
            .where(WebhookEvent.event_type == event_type)
            .order_by(WebhookEvent.processed_at_ms.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_failed(self, limit: int = DEFAULT_LIMIT) -> list[WebhookEvent]:
        """Events whose handler raised, for inspection and replay."""
        result = await self.db.execute(
            select(WebhookEvent)
            .where(WebhookEvent.status == WebhookEventStatus.FAILED.value)
            .order_by(WebhookEvent.processed_at_ms.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
