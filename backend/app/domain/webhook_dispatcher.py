"""
Asaas Webhook Dispatcher

Turns one raw webhook delivery into an audit entry plus, when applicable,
a subscription change.

Flow per delivery:
1. Parse JSON. Unparsable -> FAILURE entry, 400 outcome (the only non-200).
2. No `event` field -> FAILURE entry, acknowledged.
3. SUCCESS entry "Event '<name>' received and logged." is always written
   before any business logic runs.
4. Route by event name:
   - PAYMENT_RECEIVED, PAYMENT_CONFIRMED, CHECKOUT_PAID -> apply the plan
   - SUBSCRIPTION_INACTIVATED, SUBSCRIPTION_DELETED, and
     SUBSCRIPTION_UPDATED with an INACTIVE subscription -> cancel
   - anything else -> acknowledged, no action
5. Acknowledge with 200.

The gateway retries on any non-2xx, so nothing raised by a handler may
escape dispatch().
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from app.domain.identity import IdentityResolver
from app.domain.interfaces import WebhookLogStore
from app.domain.plan_extractor import resolve_plan_info
from app.domain.services import SubscriptionService
from app.domain.subscription import WebhookLogStatus, utcnow


logger = logging.getLogger(__name__)


PAYMENT_EVENTS = frozenset({
    "PAYMENT_RECEIVED",
    "PAYMENT_CONFIRMED",
    "CHECKOUT_PAID",
})

INACTIVATION_EVENTS = frozenset({
    "SUBSCRIPTION_INACTIVATED",
    "SUBSCRIPTION_DELETED",
})

SUBSCRIPTION_UPDATED = "SUBSCRIPTION_UPDATED"
INACTIVE_SUBSCRIPTION_STATUS = "INACTIVE"

ACK_MESSAGE = "Webhook received."
MALFORMED_MESSAGE = "Malformed payload."


class EventKind(str, Enum):
    """Handler family an event is routed to."""
    PAYMENT = "payment"
    INACTIVATION = "inactivation"
    IGNORED = "ignored"


@dataclass
class WebhookOutcome:
    """What the HTTP layer should answer."""
    status_code: int
    message: str


def classify_event(event: Mapping[str, Any]) -> EventKind:
    name = event.get("event")

    if name in PAYMENT_EVENTS:
        return EventKind.PAYMENT

    if name in INACTIVATION_EVENTS:
        return EventKind.INACTIVATION

    if name == SUBSCRIPTION_UPDATED:
        subscription = event.get("subscription")
        if isinstance(subscription, Mapping):
            status = subscription.get("status")
            if isinstance(status, str) and status.upper() == INACTIVE_SUBSCRIPTION_STATUS:
                return EventKind.INACTIVATION

    return EventKind.IGNORED


def _payment_object(event: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    """The charge an event pays for; checkout events carry it as `checkout`."""
    for key in ("payment", "checkout"):
        value = event.get(key)
        if isinstance(value, Mapping):
            return value
    return None


class WebhookDispatcher:
    """
    Processes inbound gateway webhooks.

    Args:
        subscriptions: Service that applies and cancels plans
        resolver: Maps events to internal user ids
        logs: Audit trail store
        clock: Source of "now"; expiry arithmetic starts from it
    """

    def __init__(
        self,
        subscriptions: SubscriptionService,
        resolver: IdentityResolver,
        logs: WebhookLogStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._subscriptions = subscriptions
        self._resolver = resolver
        self._logs = logs
        self._clock = clock

    async def _log(self, payload: Any, status: WebhookLogStatus, details: str) -> None:
        """Write an audit entry. A failing audit store must not fail the delivery."""
        try:
            await self._logs.add(payload, status, details)
        except Exception as e:
            logger.critical(f"Failed to save webhook log ({status.value}: {details}): {e}")

    async def dispatch_raw(self, body: bytes) -> WebhookOutcome:
        """Parse and dispatch a raw request body."""
        try:
            event = json.loads(body)
        except (ValueError, RecursionError) as e:
            message = f"Failed to parse webhook body: {e}"
            logger.error(message)
            await self._log({"body": "Invalid JSON"}, WebhookLogStatus.FAILURE, message)
            return WebhookOutcome(status_code=400, message=MALFORMED_MESSAGE)

        return await self.dispatch(event)

    async def dispatch(self, event: Any) -> WebhookOutcome:
        """Dispatch an already-parsed event."""
        event_name = event.get("event") if isinstance(event, Mapping) else None
        if not event_name or not isinstance(event_name, str):
            message = "Webhook ignored: no event field in payload."
            logger.warning(message)
            await self._log(event, WebhookLogStatus.FAILURE, message)
            return WebhookOutcome(status_code=200, message=ACK_MESSAGE)

        await self._log(
            event,
            WebhookLogStatus.SUCCESS,
            f"Event '{event_name}' received and logged.",
        )

        kind = classify_event(event)
        try:
            if kind == EventKind.PAYMENT:
                await self.handle_payment(event)
            elif kind == EventKind.INACTIVATION:
                await self.handle_inactivation(event)
            else:
                logger.info(f"Event {event_name} acknowledged, no action required")
        except Exception as e:
            logger.exception(f"Unexpected error processing event {event_name}")
            await self._log(
                event,
                WebhookLogStatus.FAILURE,
                f"Unexpected error processing event '{event_name}': {e}",
            )

        return WebhookOutcome(status_code=200, message=ACK_MESSAGE)

    # =========================================================================
    # Handlers
    # =========================================================================

    async def handle_payment(self, event: Mapping[str, Any]) -> None:
        """Attribute a confirmed payment and grant the plan it paid for."""
        payment = _payment_object(event)
        if payment is None:
            await self._log(
                event,
                WebhookLogStatus.FAILURE,
                f"Event {event.get('event')} has no payment object.",
            )
            return

        lookup_event = event if "payment" in event else {**event, "payment": payment}
        user_id = await self._resolver.resolve_user_id(lookup_event)
        if not user_id:
            await self._log(
                event,
                WebhookLogStatus.FAILURE,
                f"Could not attribute payment {payment.get('id')} to any user "
                f"(customer: {payment.get('customer')}).",
            )
            return

        plan_info = resolve_plan_info(payment)
        if not plan_info.is_complete:
            await self._log(
                event,
                WebhookLogStatus.FAILURE,
                f"Could not determine plan and billing cycle for user {user_id} "
                f"(description: {payment.get('description')!r}).",
            )
            return

        subscription_id = payment.get("subscription")
        result = await self._subscriptions.apply_plan(
            user_id,
            plan_info.plan_name,
            plan_info.billing_cycle,
            external_subscription_id=subscription_id if isinstance(subscription_id, str) else None,
            now=self._clock(),
        )
        await self._log(
            event,
            WebhookLogStatus.SUCCESS if result.success else WebhookLogStatus.FAILURE,
            result.message,
        )

    async def handle_inactivation(self, event: Mapping[str, Any]) -> None:
        """Demote the owner of a subscription the gateway has ended."""
        user_id = await self._resolver.resolve_user_id(event)
        if not user_id:
            await self._log(
                event,
                WebhookLogStatus.FAILURE,
                f"Could not attribute {event.get('event')} to any user.",
            )
            return

        # The gateway already ended the charge; only local state changes.
        result = await self._subscriptions.cancel(
            user_id,
            cancel_upstream=False,
            now=self._clock(),
        )
        await self._log(
            event,
            WebhookLogStatus.SUCCESS if result.success else WebhookLogStatus.FAILURE,
            result.message,
        )
