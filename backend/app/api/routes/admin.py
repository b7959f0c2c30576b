"""
Admin Routes for Subscription Support

Manual tier overrides and the webhook audit trail.
Protected by API key authentication.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from app.api.dependencies import (
    WebhookLogRepoDep,
    get_subscription_service,
    verify_admin_api_key,
)
from app.domain.services import SubscriptionService
from app.domain.subscription import (
    BillingCycle,
    SubscriptionStatus,
    SubscriptionStatusResponse,
)
from app.infrastructure.db.models import WebhookLogRead


logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(verify_admin_api_key)],  # Protect ALL admin routes
)


class SetSubscriptionRequest(BaseModel):
    """Tier override. A paid tier needs a billing cycle."""
    user_id: str
    status: SubscriptionStatus
    billing_cycle: Optional[BillingCycle] = None


class SetSubscriptionResult(BaseModel):
    success: bool
    message: str


@router.post("/subscriptions", response_model=SetSubscriptionResult)
async def set_subscription(
    data: SetSubscriptionRequest,
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Set a user's tier directly.

    `free` demotes immediately and clears the gateway subscription id without
    calling the gateway. A paid tier recomputes the expiry from now.
    """
    result = await service.set_status(data.user_id, data.status, data.billing_cycle)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.message,
        )

    logger.info(f"Admin set user {data.user_id} to {data.status.value}")
    return SetSubscriptionResult(success=True, message=result.message)


@router.get("/webhook-logs", response_model=List[WebhookLogRead])
async def list_webhook_logs(
    logs: WebhookLogRepoDep,
    limit: int = Query(50, ge=1, le=200),
    log_status: Optional[str] = Query(None, alias="status", pattern="^(SUCCESS|FAILURE)$"),
):
    """Newest webhook audit entries first."""
    entries = await logs.list_recent(limit=limit, status=log_status)
    return [WebhookLogRead.model_validate(entry, from_attributes=True) for entry in entries]


@router.get("/users/{user_id}/subscription", response_model=SubscriptionStatusResponse)
async def get_user_subscription(
    user_id: str,
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Stored and effective tier for one user."""
    result = await service.get_status(user_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return result
