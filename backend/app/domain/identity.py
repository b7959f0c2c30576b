"""
Webhook Identity Resolution

Maps an inbound gateway event to an internal user id. Strategies are tried
in a fixed order and the first non-empty answer wins; later strategies (in
particular the network lookup) never run after a hit.

Order:
1. payment.metadata.userId          (set by us at charge creation)
2. payment.externalReference
3. subscription.externalReference
4. customer.externalReference
5. stored user whose external_customer_id matches the event's customer
6. gateway GET /customers/{id} -> externalReference

A None result is an expected outcome for unrelated or malformed events.
"""

import logging
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple

from app.domain.interfaces import PaymentGateway, UserStore
from app.infrastructure.exceptions import DatabaseError, PaymentGatewayError


logger = logging.getLogger(__name__)


Event = Mapping[str, Any]
Strategy = Callable[[Event], Awaitable[Optional[str]]]


def _section(event: Event, key: str) -> Mapping[str, Any]:
    value = event.get(key)
    return value if isinstance(value, Mapping) else {}


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def customer_id_from_event(event: Event) -> Optional[str]:
    """Gateway customer id carried by a payment, subscription or customer event."""
    for key in ("payment", "subscription"):
        customer_id = _clean(_section(event, key).get("customer"))
        if customer_id:
            return customer_id

    customer = event.get("customer")
    if isinstance(customer, Mapping):
        return _clean(customer.get("id"))
    return _clean(customer)


class IdentityResolver:
    """
    Resolves the user an event belongs to.

    `strategies` is the ordered list of (name, strategy) pairs that
    `resolve_user_id` walks.
    """

    def __init__(self, users: UserStore, gateway: Optional[PaymentGateway] = None):
        self._users = users
        self._gateway = gateway
        self.strategies: List[Tuple[str, Strategy]] = [
            ("payment_metadata", self._from_payment_metadata),
            ("payment_reference", self._from_payment_reference),
            ("subscription_reference", self._from_subscription_reference),
            ("customer_reference", self._from_customer_reference),
            ("stored_customer", self._from_stored_customer),
            ("gateway_customer", self._from_gateway_customer),
        ]

    async def resolve_user_id(self, event: Event) -> Optional[str]:
        """Return the first user id any strategy yields, else None."""
        for name, strategy in self.strategies:
            user_id = await strategy(event)
            if user_id:
                logger.info(f"Attributed event to user {user_id} via {name}")
                return user_id

        logger.warning(
            f"Could not attribute event {event.get('event')!r} "
            f"(customer={customer_id_from_event(event)})"
        )
        return None

    # =========================================================================
    # Strategies
    # =========================================================================

    async def _from_payment_metadata(self, event: Event) -> Optional[str]:
        metadata = _section(event, "payment").get("metadata")
        if isinstance(metadata, Mapping):
            return _clean(metadata.get("userId"))
        return None

    async def _from_payment_reference(self, event: Event) -> Optional[str]:
        return _clean(_section(event, "payment").get("externalReference"))

    async def _from_subscription_reference(self, event: Event) -> Optional[str]:
        return _clean(_section(event, "subscription").get("externalReference"))

    async def _from_customer_reference(self, event: Event) -> Optional[str]:
        return _clean(_section(event, "customer").get("externalReference"))

    async def _from_stored_customer(self, event: Event) -> Optional[str]:
        customer_id = customer_id_from_event(event)
        if not customer_id:
            return None

        try:
            user = await self._users.find_by_external_customer_id(customer_id)
        except DatabaseError as e:
            logger.error(f"Reverse lookup for customer {customer_id} failed: {e.message}")
            return None

        return _clean(getattr(user, "id", None)) if user else None

    async def _from_gateway_customer(self, event: Event) -> Optional[str]:
        customer_id = customer_id_from_event(event)
        if not customer_id or self._gateway is None:
            return None

        try:
            reference = await self._gateway.get_customer_external_reference(customer_id)
        except PaymentGatewayError as e:
            logger.error(f"Gateway lookup for customer {customer_id} failed: {e.message}")
            return None

        return _clean(reference)
