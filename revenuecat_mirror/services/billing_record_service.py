"""
Billing Record Service
======================

Read operations over invoices, transfers and virtual currency.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from revenuecat_mirror.models.billing import (
    Invoice,
    Transfer,
    VirtualCurrencyBalance,
    VirtualCurrencyTransaction,
)


class BillingRecordService:
    """Service for billing record read operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        result = await self.db.execute(
            select(Invoice).where(Invoice.invoice_id == invoice_id)
        )
        return result.scalar_one_or_none()

    async def list_invoices(self, app_user_id: str) -> list[Invoice]:
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.app_user_id == app_user_id)
            .order_by(Invoice.issued_at_ms.desc())
        )
        return list(result.scalars().all())

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    async def get_transfer(self, event_id: str) -> Optional[Transfer]:
        result = await self.db.execute(
            select(Transfer).where(Transfer.event_id == event_id)
        )
        return result.scalar_one_or_none()

    async def list_transfers(self, limit: int = 100) -> list[Transfer]:
        """Most recent transfers first."""
        result = await self.db.execute(
            select(Transfer).order_by(Transfer.timestamp_ms.desc()).limit(limit)
        )
        return list(result.scalars().all())

    # -------------------------------------------------------------------------
    # Virtual Currency
    # -------------------------------------------------------------------------

    async def get_balance(
        self,
        app_user_id: str,
        currency_code: str,
    ) -> Optional[VirtualCurrencyBalance]:
        result = await self.db.execute(
            select(VirtualCurrencyBalance).where(
                VirtualCurrencyBalance.app_user_id == app_user_id,
                VirtualCurrencyBalance.currency_code == currency_code,
            )
        )
        return result.scalar_one_or_none()

    async def list_balances(self, app_user_id: str) -> list[VirtualCurrencyBalance]:
        result = await self.db.execute(
            select(VirtualCurrencyBalance)
            .where(VirtualCurrencyBalance.app_user_id == app_user_id)
            .order_by(VirtualCurrencyBalance.currency_code)
        )
        return list(result.scalars().all())

    async def list_currency_transactions(
        self,
        app_user_id: str,
        currency_code: Optional[str] = None,
    ) -> list[VirtualCurrencyTransaction]:
        """Ledger entries, oldest first, optionally for one currency."""
        query = select(VirtualCurrencyTransaction).where(
            VirtualCurrencyTransaction.app_user_id == app_user_id
        )
        if currency_code:
            query = query.where(VirtualCurrencyTransaction.currency_code == currency_code)

        result = await self.db.execute(
            query.order_by(
                VirtualCurrencyTransaction.timestamp_ms,
                VirtualCurrencyTransaction.created_at,
            )
        )
        return list(result.scalars().all())
