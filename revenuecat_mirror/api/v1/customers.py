"""
Customers API Endpoints
=======================

Read endpoints scoped to one RevenueCat app user id: profile, entitlement
checks, subscriptions, experiments, invoices and virtual currency.
"""

from typing import Optional

from fastapi import APIRouter

from revenuecat_mirror.core.errors import NotFoundError
from revenuecat_mirror.dependencies import ApiToken, DBSession
from revenuecat_mirror.schemas.billing import (
    InvoiceResponse,
    VirtualCurrencyBalanceResponse,
    VirtualCurrencyTransactionResponse,
)
from revenuecat_mirror.schemas.common import BaseResponse
from revenuecat_mirror.schemas.customer import (
    CustomerResponse,
    EntitlementCheckResponse,
    EntitlementResponse,
    ExperimentResponse,
)
from revenuecat_mirror.schemas.subscription import SubscriptionResponse
from revenuecat_mirror.services.billing_record_service import BillingRecordService
from revenuecat_mirror.services.customer_service import CustomerService
from revenuecat_mirror.services.entitlement_service import EntitlementService
from revenuecat_mirror.services.subscription_service import SubscriptionService

router = APIRouter(dependencies=[ApiToken])


@router.get("/{app_user_id}", response_model=BaseResponse[CustomerResponse])
async def get_customer(app_user_id: str, db: DBSession):
    customer = await CustomerService(db).get(app_user_id)
    if customer is None:
        raise NotFoundError(message=f"Customer {app_user_id} not found")
    return BaseResponse(data=CustomerResponse.model_validate(customer))


# =============================================================================
# Entitlements
# =============================================================================

@router.get(
    "/{app_user_id}/entitlements",
    response_model=BaseResponse[list[EntitlementResponse]],
)
async def list_entitlements(
    app_user_id: str,
    db: DBSession,
    active_only: bool = False,
):
    """Entitlements of a user, each flagged with ``is_currently_active``."""
    service = EntitlementService(db)
    if active_only:
        rows = await service.list_active(app_user_id)
    else:
        rows = await service.list_all(app_user_id)
    return BaseResponse(data=[EntitlementResponse.model_validate(row) for row in rows])


@router.get(
    "/{app_user_id}/entitlements/{entitlement_id}",
    response_model=BaseResponse[EntitlementCheckResponse],
)
async def check_entitlement(app_user_id: str, entitlement_id: str, db: DBSession):
    """Whether the user has the entitlement right now."""
    is_active = await EntitlementService(db).check(app_user_id, entitlement_id)
    return BaseResponse(
        data=EntitlementCheckResponse(
            app_user_id=app_user_id,
            entitlement_id=entitlement_id,
            is_active=is_active,
        )
    )


# =============================================================================
# Subscriptions
# =============================================================================

@router.get(
    "/{app_user_id}/subscriptions",
    response_model=BaseResponse[list[SubscriptionResponse]],
)
async def list_subscriptions(
    app_user_id: str,
    db: DBSession,
    active_only: bool = False,
):
    service = SubscriptionService(db)
    if active_only:
        subscriptions = await service.list_active(app_user_id)
    else:
        subscriptions = await service.list_all(app_user_id)
    return BaseResponse(
        data=[SubscriptionResponse.model_validate(s) for s in subscriptions]
    )


# =============================================================================
# Experiments
# =============================================================================

@router.get(
    "/{app_user_id}/experiments",
    response_model=BaseResponse[list[ExperimentResponse]],
)
async def list_experiments(app_user_id: str, db: DBSession):
    experiments = await CustomerService(db).list_experiments(app_user_id)
    return BaseResponse(data=[ExperimentResponse.model_validate(e) for e in experiments])


@router.get(
    "/{app_user_id}/experiments/{experiment_id}",
    response_model=BaseResponse[ExperimentResponse],
)
async def get_experiment(app_user_id: str, experiment_id: str, db: DBSession):
    experiment = await CustomerService(db).get_experiment(app_user_id, experiment_id)
    if experiment is None:
        raise NotFoundError(
            message=f"Experiment {experiment_id} not found for {app_user_id}"
        )
    return BaseResponse(data=ExperimentResponse.model_validate(experiment))


# =============================================================================
# Billing
# =============================================================================

@router.get(
    "/{app_user_id}/invoices",
    response_model=BaseResponse[list[InvoiceResponse]],
)
async def list_invoices(app_user_id: str, db: DBSession):
    invoices = await BillingRecordService(db).list_invoices(app_user_id)
    return BaseResponse(data=[InvoiceResponse.model_validate(i) for i in invoices])


@router.get(
    "/{app_user_id}/virtual-currency",
    response_model=BaseResponse[list[VirtualCurrencyBalanceResponse]],
)
async def list_balances(app_user_id: str, db: DBSession):
    balances = await BillingRecordService(db).list_balances(app_user_id)
    return BaseResponse(
        data=[VirtualCurrencyBalanceResponse.model_validate(b) for b in balances]
    )


@router.get(
    "/{app_user_id}/virtual-currency/transactions",
    response_model=BaseResponse[list[VirtualCurrencyTransactionResponse]],
)
async def list_currency_transactions(
    app_user_id: str,
    db: DBSession,
    currency_code: Optional[str] = None,
):
    transactions = await BillingRecordService(db).list_currency_transactions(
        app_user_id,
        currency_code=currency_code,
    )
    return BaseResponse(
        data=[VirtualCurrencyTransactionResponse.model_validate(t) for t in transactions]
    )
