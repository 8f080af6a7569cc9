"""
Subscriptions API Endpoints
===========================

Lookups by original transaction id.
"""

from fastapi import APIRouter

from revenuecat_mirror.core.errors import NotFoundError
from revenuecat_mirror.dependencies import ApiToken, DBSession
from revenuecat_mirror.schemas.common import BaseResponse
from revenuecat_mirror.schemas.subscription import GracePeriodStatus, SubscriptionResponse
from revenuecat_mirror.services.subscription_service import SubscriptionService

router = APIRouter(dependencies=[ApiToken])


@router.get(
    "/{original_transaction_id}",
    response_model=BaseResponse[SubscriptionResponse],
)
async def get_subscription(original_transaction_id: str, db: DBSession):
    subscription = await SubscriptionService(db).get_by_original_transaction(
        original_transaction_id
    )
    if subscription is None:
        raise NotFoundError(message=f"Subscription {original_transaction_id} not found")
    return BaseResponse(data=SubscriptionResponse.model_validate(subscription))


@router.get(
    "/{original_transaction_id}/grace-period",
    response_model=BaseResponse[GracePeriodStatus],
)
async def get_grace_period_status(original_transaction_id: str, db: DBSession):
    """
    Billing-retry grace period state.

    ``in_grace_period`` is true while the normal term has lapsed but the
    store is still retrying payment.
    """
    status = await SubscriptionService(db).get_grace_period_status(original_transaction_id)
    if status is None:
        raise NotFoundError(message=f"Subscription {original_transaction_id} not found")
    return BaseResponse(data=status)
