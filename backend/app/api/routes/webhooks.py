"""
Asaas Webhook Endpoint

Receives payment and subscription lifecycle notifications from the Asaas
gateway. Every delivery is recorded in the webhook audit log before any
business logic runs.

Handled events:
- PAYMENT_RECEIVED / PAYMENT_CONFIRMED / CHECKOUT_PAID: grant the paid plan
- SUBSCRIPTION_INACTIVATED / SUBSCRIPTION_DELETED: revert to free tier
- SUBSCRIPTION_UPDATED with status INACTIVE: revert to free tier

The gateway retries any non-2xx answer, so only a body that cannot be
parsed is rejected (400). Everything else is acknowledged with 200.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from app.api.dependencies import get_webhook_dispatcher
from app.domain.webhook_dispatcher import WebhookDispatcher


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhooks/asaas")
async def asaas_webhook(
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
):
    body = await request.body()
    outcome = await dispatcher.dispatch_raw(body)

    if outcome.status_code != 200:
        return PlainTextResponse(outcome.message, status_code=outcome.status_code)

    return JSONResponse({"message": outcome.message}, status_code=outcome.status_code)


@router.get("/webhooks/asaas")
async def asaas_webhook_info():
    """Static description so the URL can be checked from a browser."""
    return {
        "message": "Asaas webhook endpoint. Send POST requests with event payloads.",
        "method": "POST",
    }
