"""
Customer Service
================

Read operations over customers and experiment enrollments.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from revenuecat_mirror.models.customer import Customer, Experiment


class CustomerService:
    """Service for customer read operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, app_user_id: str) -> Optional[Customer]:
        result = await self.db.execute(
            select(Customer).where(Customer.app_user_id == app_user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_original_id(self, original_app_user_id: str) -> Optional[Customer]:
        """First customer whose original app user id matches."""
        result = await self.db.execute(
            select(Customer)
            .where(Customer.original_app_user_id == original_app_user_id)
            .order_by(Customer.first_seen_at_ms)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_experiments(self, app_user_id: str) -> list[Experiment]:
        result = await self.db.execute(
            select(Experiment)
            .where(Experiment.app_user_id == app_user_id)
            .order_by(Experiment.enrolled_at_ms.desc())
        )
        return list(result.scalars().all())

    async def get_experiment(
        self,
        app_user_id: str,
        experiment_id: str,
    ) -> Optional[Experiment]:
        result = await self.db.execute(
            select(Experiment).where(
                Experiment.app_user_id == app_user_id,
                Experiment.experiment_id == experiment_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_experiment_enrollments(self, experiment_id: str) -> list[Experiment]:
        """Every user enrolled in an experiment."""
        result = await self.db.execute(
            select(Experiment)
            .where(Experiment.experiment_id == experiment_id)
            .order_by(Experiment.enrolled_at_ms)
        )
        return list(result.scalars().all())
