"""
Asaas Payment Gateway Client

Infrastructure client for the Asaas REST API (v3).
Handles customers, one-off charges (PIX/boleto), recurring card
subscriptions, and the lookups used to attribute webhooks.

Every call is a single attempt with the configured timeout. Failures raise
PaymentGatewayError; callers that must not fail (webhook attribution,
best-effort cancellation) catch it at the call site.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from functools import lru_cache
from typing import Any, Dict, Optional

import httpx

from app.config.settings import Settings, get_settings
from app.domain.subscription import (
    BillingCycle,
    BillingType,
    PlanName,
    charge_description,
)
from app.infrastructure.exceptions import ConfigurationError, PaymentGatewayError


logger = logging.getLogger(__name__)


SANDBOX_BASE_URL = "https://sandbox.asaas.com/api/v3"
PRODUCTION_BASE_URL = "https://api.asaas.com/v3"

# Payment statuses that mean the money arrived
PAID_PAYMENT_STATUSES = frozenset({"RECEIVED", "CONFIRMED", "RECEIVED_IN_CASH"})


@dataclass(frozen=True)
class AsaasConfig:
    """Resolved gateway configuration, built once at startup."""
    api_key: str
    base_url: str
    timeout: float = 15.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "AsaasConfig":
        if not settings.asaas_api_key:
            raise ConfigurationError(
                "Payment gateway is not configured",
                missing_keys=["ASAAS_API_KEY"],
            )

        if settings.asaas_base_url:
            base_url = settings.asaas_base_url
        elif settings.asaas_environment == "production":
            base_url = PRODUCTION_BASE_URL
        else:
            base_url = SANDBOX_BASE_URL

        return cls(
            api_key=settings.asaas_api_key,
            base_url=base_url.rstrip("/"),
            timeout=settings.asaas_timeout_seconds,
        )


def _digits(value: Optional[str]) -> Optional[str]:
    return re.sub(r"\D", "", value) if value else value


def _due_date(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def _error_description(response: httpx.Response) -> str:
    """First error description in an Asaas error body, or the HTTP reason."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            description = errors[0].get("description")
            if description:
                return description

    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


class AsaasClient:
    """
    Asaas REST client.

    Authenticates with the static `access_token` header.
    """

    def __init__(
        self,
        config: AsaasConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout,
            headers={
                "access_token": self._config.api_key,
                "accept": "application/json",
            },
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error(f"[ASAAS] {operation} transport error: {e}")
            raise PaymentGatewayError(
                f"Payment gateway unreachable: {e}",
                operation=operation,
                original_error=e,
            ) from e

        if response.is_error:
            description = _error_description(response)
            logger.error(f"[ASAAS] {operation} failed ({response.status_code}): {description}")
            raise PaymentGatewayError(
                description,
                operation=operation,
                status_code=response.status_code,
            )

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise PaymentGatewayError(
                "Payment gateway returned invalid JSON",
                operation=operation,
                status_code=response.status_code,
                original_error=e,
            ) from e

    # =========================================================================
    # Customers
    # =========================================================================

    async def create_customer(
        self,
        user_id: str,
        name: str,
        email: str,
        cpf_cnpj: str,
        phone: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a billing customer pointing back at the internal user.

        Args:
            user_id: Internal user ID, stored as externalReference
            name: Customer name
            email: Customer email for receipts
            cpf_cnpj: Brazilian tax id (formatting is stripped)
            phone: Optional mobile phone

        Returns:
            Asaas customer object
        """
        payload = {
            "name": name,
            "email": email,
            "cpfCnpj": _digits(cpf_cnpj),
            "externalReference": user_id,
        }
        if phone:
            payload["mobilePhone"] = _digits(phone)

        customer = await self._request("POST", "/customers", "create_customer", json=payload)
        logger.info(f"[ASAAS] Created customer {customer.get('id')} for user {user_id}")
        return customer

    async def find_customer_by_tax_id(self, cpf_cnpj: str) -> Optional[Dict[str, Any]]:
        """Search customers by tax id; first match or None."""
        result = await self._request(
            "GET",
            "/customers",
            "find_customer",
            params={"cpfCnpj": _digits(cpf_cnpj)},
        )
        data = result.get("data") or []
        return data[0] if data else None

    async def get_customer(self, customer_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/customers/{customer_id}", "get_customer")

    async def get_customer_external_reference(self, customer_id: str) -> Optional[str]:
        """
        Read a customer's externalReference.

        Never raises: any gateway failure yields None.
        """
        try:
            customer = await self.get_customer(customer_id)
        except PaymentGatewayError as e:
            logger.warning(f"[ASAAS] Could not resolve customer {customer_id}: {e.message}")
            return None

        reference = customer.get("externalReference")
        return reference or None

    # =========================================================================
    # One-off Charges
    # =========================================================================

    async def create_payment(
        self,
        customer_id: str,
        user_id: str,
        billing_type: BillingType,
        plan_name: PlanName,
        billing_cycle: BillingCycle,
        value_cents: int,
        due_days: int = 3,
    ) -> Dict[str, Any]:
        """
        Create a PIX or boleto charge.

        The user id travels both as externalReference and inside metadata so
        the webhook can attribute the payment without a lookup.
        """
        payload = {
            "customer": customer_id,
            "billingType": BillingType(billing_type).value,
            "value": round(value_cents / 100, 2),
            "dueDate": _due_date(due_days),
            "description": charge_description(plan_name, billing_cycle),
            "externalReference": user_id,
            "metadata": {
                "userId": user_id,
                "plan": PlanName(plan_name).value,
                "billingCycle": BillingCycle(billing_cycle).value,
            },
        }

        payment = await self._request("POST", "/payments", "create_payment", json=payload)
        logger.info(
            f"[ASAAS] Created {payload['billingType']} payment {payment.get('id')} "
            f"for user {user_id}, plan={payload['metadata']['plan']}"
        )
        return payment

    async def get_payment(self, payment_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/payments/{payment_id}", "get_payment")

    async def get_pix_qr_code(self, payment_id: str) -> Dict[str, Any]:
        """Fetch the PIX copy-and-paste payload and QR image for a charge."""
        return await self._request(
            "GET", f"/payments/{payment_id}/pixQrCode", "get_pix_qr_code"
        )

    # =========================================================================
    # Recurring Subscriptions
    # =========================================================================

    async def create_subscription(
        self,
        customer_id: str,
        user_id: str,
        plan_name: PlanName,
        billing_cycle: BillingCycle,
        value_cents: int,
        credit_card_token: str,
        remote_ip: str,
        first_due_days: int = 1,
    ) -> Dict[str, Any]:
        """Create a recurring credit-card subscription from a card token."""
        cycle = "YEARLY" if BillingCycle(billing_cycle) == BillingCycle.YEARLY else "MONTHLY"
        payload = {
            "customer": customer_id,
            "billingType": BillingType.CREDIT_CARD.value,
            "nextDueDate": _due_date(first_due_days),
            "value": round(value_cents / 100, 2),
            "cycle": cycle,
            "description": charge_description(plan_name, billing_cycle),
            "externalReference": user_id,
            "creditCardToken": credit_card_token,
            "remoteIp": remote_ip,
        }

        subscription = await self._request(
            "POST", "/subscriptions", "create_subscription", json=payload
        )
        logger.info(
            f"[ASAAS] Created subscription {subscription.get('id')} for user {user_id}, "
            f"cycle={cycle}"
        )
        return subscription

    async def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        """Cancel a recurring charge. Takes effect immediately at the gateway."""
        result = await self._request(
            "DELETE", f"/subscriptions/{subscription_id}", "cancel_subscription"
        )
        logger.info(f"[ASAAS] Cancelled subscription {subscription_id}")
        return result


@lru_cache
def get_asaas_client() -> AsaasClient:
    """Get cached gateway client built from settings."""
    return AsaasClient(AsaasConfig.from_settings(get_settings()))
