"""
Subscription API Routes

Status, cancellation and plan catalog for the signed-in user.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import get_current_user_id, get_subscription_service
from app.domain.services import SubscriptionService
from app.domain.subscription import (
    MessageResponse,
    PlansResponse,
    SubscriptionStatusResponse,
    build_plans_response,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/subscriptions/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    user_id: str = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Get the current user's subscription status.

    `effective_status` is what feature gates should use: a paid tier past its
    expiry reads as free even before anything rewrites the stored status.
    """
    result = await service.get_status(user_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return result


@router.post("/subscriptions/cancel", response_model=MessageResponse)
async def cancel_subscription(
    user_id: str = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Cancel the current user's subscription.

    Demotion to free is immediate. The recurring charge at the gateway is
    cancelled on a best-effort basis.
    """
    result = await service.cancel(user_id)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.message,
        )

    logger.info(f"User {user_id} cancelled their subscription")
    return MessageResponse(message=result.message)


@router.get("/subscriptions/plans", response_model=PlansResponse)
async def get_plans():
    """Plan catalog with monthly and yearly prices in BRL cents."""
    return build_plans_response()
