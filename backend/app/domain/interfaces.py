"""
Billing Interfaces for Nutrinea

Protocols for the collaborators the billing domain depends on: the user
store, the webhook audit log, and the payment gateway. Infrastructure
classes satisfy these structurally; tests substitute in-memory fakes.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable

from app.domain.subscription import SubscriptionRecord, WebhookLogStatus


@runtime_checkable
class UserStore(Protocol):
    """Read/partial-update access to user records."""

    async def get_subscription(self, user_id: str) -> Optional[SubscriptionRecord]:
        ...

    async def find_by_external_customer_id(self, external_customer_id: str) -> Optional[Any]:
        """Return an object with an `id` attribute, or None."""
        ...

    async def update_fields(self, user_id: str, fields: Dict[str, Any]) -> bool:
        ...


@runtime_checkable
class WebhookLogStore(Protocol):
    """Insert-only audit trail."""

    async def add(self, payload: Any, status: WebhookLogStatus, details: str) -> Any:
        ...


@runtime_checkable
class PaymentGateway(Protocol):
    """The gateway calls the reconciliation flow needs."""

    async def get_customer_external_reference(self, customer_id: str) -> Optional[str]:
        ...

    async def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        ...
