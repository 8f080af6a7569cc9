"""
Billing API Endpoints
=====================

Invoices, transfers and experiment-wide enrollment listings.
"""

from typing import Annotated

from fastapi import APIRouter, Query

from revenuecat_mirror.core.errors import NotFoundError
from revenuecat_mirror.dependencies import ApiToken, DBSession
from revenuecat_mirror.schemas.billing import InvoiceResponse, TransferResponse
from revenuecat_mirror.schemas.common import BaseResponse
from revenuecat_mirror.schemas.customer import ExperimentResponse
from revenuecat_mirror.services.billing_record_service import BillingRecordService
from revenuecat_mirror.services.customer_service import CustomerService

router = APIRouter(dependencies=[ApiToken])


@router.get("/invoices/{invoice_id}", response_model=BaseResponse[InvoiceResponse])
async def get_invoice(invoice_id: str, db: DBSession):
    invoice = await BillingRecordService(db).get_invoice(invoice_id)
    if invoice is None:
        raise NotFoundError(message=f"Invoice {invoice_id} not found")
    return BaseResponse(data=InvoiceResponse.model_validate(invoice))


@router.get("/transfers", response_model=BaseResponse[list[TransferResponse]])
async def list_transfers(
    db: DBSession,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
):
    """Most recent transfers first."""
    transfers = await BillingRecordService(db).list_transfers(limit=limit)
    return BaseResponse(data=[TransferResponse.model_validate(t) for t in transfers])


@router.get("/transfers/{event_id}", response_model=BaseResponse[TransferResponse])
async def get_transfer(event_id: str, db: DBSession):
    transfer = await BillingRecordService(db).get_transfer(event_id)
    if transfer is None:
        raise NotFoundError(message=f"Transfer {event_id} not found")
    return BaseResponse(data=TransferResponse.model_validate(transfer))


@router.get(
    "/experiments/{experiment_id}/enrollments",
    response_model=BaseResponse[list[ExperimentResponse]],
)
async def list_experiment_enrollments(experiment_id: str, db: DBSession):
    enrollments = await CustomerService(db).list_experiment_enrollments(experiment_id)
    return BaseResponse(data=[ExperimentResponse.model_validate(e) for e in enrollments])
