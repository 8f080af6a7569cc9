"""
Billing Schemas
===============

Response schemas for transfers, invoices and virtual currency.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class TransferResponse(BaseModel):
    event_id: str
    transferred_from: list[str]
    transferred_to: list[str]
    entitlement_ids: Optional[list[str]] = None
    timestamp_ms: int

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    invoice_id: str
    app_user_id: str
    product_id: Optional[str] = None
    store: Optional[str] = None
    environment: Optional[str] = None
    price_usd: Optional[Decimal] = None
    currency: Optional[str] = None
    price_in_purchased_currency: Optional[Decimal] = None
    issued_at_ms: int

    class Config:
        from_attributes = True


class VirtualCurrencyBalanceResponse(BaseModel):
    app_user_id: str
    currency_code: str
    currency_name: Optional[str] = None
    balance: int

    class Config:
        from_attributes = True


class VirtualCurrencyTransactionResponse(BaseModel):
    transaction_id: str
    app_user_id: str
    currency_code: str
    amount: int
    source: Optional[str] = None
    product_id: Optional[str] = None
    environment: Optional[str] = None
    timestamp_ms: int

    class Config:
        from_attributes = True
