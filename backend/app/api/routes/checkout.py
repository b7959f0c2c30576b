"""
Checkout API Routes

Creates the gateway-side objects a purchase needs and verifies payments.

Flow:
1. POST /checkout/customer      -> billing customer linked to the user
2. POST /checkout/payment       -> one-off PIX or boleto charge
   POST /checkout/subscription  -> recurring credit-card subscription
3. GET  /checkout/payments/{id} -> poll a charge; grants the plan once paid

The webhook normally grants the plan first; the verification endpoint lets
the client confirm without waiting for it. Both paths apply the same plan,
so whichever runs second is a no-op in effect.
"""

import logging
from typing import Any, Mapping, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from app.api.dependencies import (
    UserRepoDep,
    get_current_user_id,
    get_gateway,
    get_subscription_service,
)
from app.config.settings import get_settings
from app.domain.plan_extractor import resolve_plan_info
from app.domain.services import SubscriptionService
from app.domain.subscription import (
    BillingCycle,
    BillingType,
    PlanName,
    plan_price_cents,
)
from app.infrastructure.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from app.infrastructure.payments import AsaasClient
from app.infrastructure.payments.asaas_client import PAID_PAYMENT_STATUSES


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout")


# =============================================================================
# Request/Response Models
# =============================================================================

class CustomerRequest(BaseModel):
    """Billing details for the gateway customer."""
    cpf_cnpj: str = Field(min_length=11, max_length=18)
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class CustomerResponse(BaseModel):
    customer_id: str
    created: bool


class PaymentRequest(BaseModel):
    """One-off charge for one billing period."""
    plan_name: PlanName
    billing_cycle: BillingCycle
    billing_type: BillingType = BillingType.PIX


class PaymentResponse(BaseModel):
    payment_id: str
    status: Optional[str] = None
    value_cents: int
    due_date: Optional[str] = None
    invoice_url: Optional[str] = None
    bank_slip_url: Optional[str] = None
    pix_qr_code: Optional[str] = Field(default=None, description="Base64 PNG")
    pix_copy_paste: Optional[str] = None


class SubscriptionCheckoutRequest(BaseModel):
    """Recurring card subscription. The card is tokenized client-side."""
    plan_name: PlanName
    billing_cycle: BillingCycle
    credit_card_token: str = Field(min_length=1)


class SubscriptionCheckoutResponse(BaseModel):
    subscription_id: str
    status: Optional[str] = None
    value_cents: int
    next_due_date: Optional[str] = None


class PaymentVerificationResponse(BaseModel):
    payment_id: str
    status: str = Field(description="PAID or PENDING")
    payment_status: Optional[str] = None
    message: str


# =============================================================================
# Helpers
# =============================================================================

async def _require_user(users: UserRepoDep, user_id: str):
    user = await users.get_by_id(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", table="users")
    return user


def _payment_owner(payment: Mapping[str, Any]) -> Optional[str]:
    metadata = payment.get("metadata")
    if isinstance(metadata, Mapping) and metadata.get("userId"):
        return metadata["userId"]
    return payment.get("externalReference")


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/customer", response_model=CustomerResponse)
async def create_customer(
    data: CustomerRequest,
    users: UserRepoDep,
    user_id: str = Depends(get_current_user_id),
    gateway: AsaasClient = Depends(get_gateway),
):
    """
    Find or create the gateway customer for the current user.

    An existing customer with the same CPF/CNPJ is reused. The customer id
    and tax id are stored on the user.
    """
    user = await _require_user(users, user_id)

    name = data.name or user.full_name
    email = data.email or user.email
    if not name or not email:
        raise ValidationError("Name and email are required to create a billing customer")

    created = False
    customer = await gateway.find_customer_by_tax_id(data.cpf_cnpj)
    if customer is None:
        customer = await gateway.create_customer(
            user_id=user_id,
            name=name,
            email=email,
            cpf_cnpj=data.cpf_cnpj,
            phone=data.phone,
        )
        created = True

    customer_id = customer["id"]
    tax_id = "".join(ch for ch in data.cpf_cnpj if ch.isdigit())
    await users.update_fields(
        user_id,
        {"external_customer_id": customer_id, "tax_id": tax_id},
    )

    logger.info(f"User {user_id} linked to customer {customer_id} (created={created})")
    return CustomerResponse(customer_id=customer_id, created=created)


@router.post("/payment", response_model=PaymentResponse)
async def create_payment(
    data: PaymentRequest,
    users: UserRepoDep,
    user_id: str = Depends(get_current_user_id),
    gateway: AsaasClient = Depends(get_gateway),
):
    """Create a PIX or boleto charge. PIX charges include the QR code."""
    if data.billing_type == BillingType.CREDIT_CARD:
        raise ValidationError("Card payments go through /checkout/subscription")

    record = await users.get_subscription(user_id)
    if record is None:
        raise NotFoundError(f"User {user_id} not found", table="users")
    if not record.external_customer_id:
        raise ValidationError("Create a billing customer before checking out")

    value_cents = plan_price_cents(data.plan_name, data.billing_cycle)
    payment = await gateway.create_payment(
        customer_id=record.external_customer_id,
        user_id=user_id,
        billing_type=data.billing_type,
        plan_name=data.plan_name,
        billing_cycle=data.billing_cycle,
        value_cents=value_cents,
        due_days=get_settings().pix_due_days,
    )

    response = PaymentResponse(
        payment_id=payment["id"],
        status=payment.get("status"),
        value_cents=value_cents,
        due_date=payment.get("dueDate"),
        invoice_url=payment.get("invoiceUrl"),
        bank_slip_url=payment.get("bankSlipUrl"),
    )

    if data.billing_type == BillingType.PIX:
        qr_code = await gateway.get_pix_qr_code(payment["id"])
        response.pix_qr_code = qr_code.get("encodedImage")
        response.pix_copy_paste = qr_code.get("payload")

    return response


@router.post("/subscription", response_model=SubscriptionCheckoutResponse)
async def create_subscription(
    data: SubscriptionCheckoutRequest,
    request: Request,
    users: UserRepoDep,
    user_id: str = Depends(get_current_user_id),
    gateway: AsaasClient = Depends(get_gateway),
):
    """
    Create a recurring credit-card subscription.

    The plan is granted when the first charge is confirmed (webhook or
    verification endpoint), not here.
    """
    record = await users.get_subscription(user_id)
    if record is None:
        raise NotFoundError(f"User {user_id} not found", table="users")
    if not record.external_customer_id:
        raise ValidationError("Create a billing customer before checking out")

    value_cents = plan_price_cents(data.plan_name, data.billing_cycle)
    subscription = await gateway.create_subscription(
        customer_id=record.external_customer_id,
        user_id=user_id,
        plan_name=data.plan_name,
        billing_cycle=data.billing_cycle,
        value_cents=value_cents,
        credit_card_token=data.credit_card_token,
        remote_ip=request.client.host if request.client else "0.0.0.0",
        first_due_days=get_settings().subscription_first_due_days,
    )

    await users.update_fields(user_id, {"external_subscription_id": subscription["id"]})

    return SubscriptionCheckoutResponse(
        subscription_id=subscription["id"],
        status=subscription.get("status"),
        value_cents=value_cents,
        next_due_date=subscription.get("nextDueDate"),
    )


@router.get("/payments/{payment_id}", response_model=PaymentVerificationResponse)
async def verify_payment(
    payment_id: str,
    user_id: str = Depends(get_current_user_id),
    gateway: AsaasClient = Depends(get_gateway),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Check a charge and grant the plan if it has been paid.

    Only the user a charge was created for may verify it.
    """
    payment = await gateway.get_payment(payment_id)

    if _payment_owner(payment) != user_id:
        logger.warning(f"User {user_id} tried to verify payment {payment_id} of another user")
        raise AuthorizationError("Payment does not belong to the current user")

    payment_status = payment.get("status")
    if payment_status not in PAID_PAYMENT_STATUSES:
        return PaymentVerificationResponse(
            payment_id=payment_id,
            status="PENDING",
            payment_status=payment_status,
            message="Payment not confirmed yet.",
        )

    plan_info = resolve_plan_info(payment)
    if not plan_info.is_complete:
        # Stay pending so the client keeps polling until plan details show up.
        logger.warning(f"Paid payment {payment_id} carries no usable plan info")
        return PaymentVerificationResponse(
            payment_id=payment_id,
            status="PENDING",
            payment_status=payment_status,
            message="Could not determine the plan of this payment.",
        )

    subscription_id = payment.get("subscription")
    result = await service.apply_plan(
        user_id,
        plan_info.plan_name,
        plan_info.billing_cycle,
        external_subscription_id=subscription_id if isinstance(subscription_id, str) else None,
    )
    if not result.success:
        raise ValidationError(result.message)

    return PaymentVerificationResponse(
        payment_id=payment_id,
        status="PAID",
        payment_status=payment_status,
        message=result.message,
    )
