"""
Subscription Domain Models

Domain models for subscription management following Clean Architecture.
Enums, DTOs, and domain entities for the subscription bounded context.

Any consumer that needs a user's tier must call effective_status() rather
than reading SubscriptionRecord.status directly. Expired paid tiers are never
demoted in storage; they are ignored at read time.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, Field


class SubscriptionStatus(str, Enum):
    """Stored subscription tier."""
    FREE = "free"
    PREMIUM = "premium"
    PROFESSIONAL = "professional"


class PlanName(str, Enum):
    """Purchasable plans as named by the checkout flow."""
    PREMIUM = "PREMIUM"
    PROFISSIONAL = "PROFISSIONAL"


class BillingCycle(str, Enum):
    """Recurrence period governing expiry arithmetic."""
    MONTHLY = "monthly"
    YEARLY = "yearly"


class BillingType(str, Enum):
    """Payment methods accepted by the gateway."""
    PIX = "PIX"
    BOLETO = "BOLETO"
    CREDIT_CARD = "CREDIT_CARD"


class WebhookLogStatus(str, Enum):
    """Whether an inbound webhook could be processed and attributed."""
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


# =============================================================================
# Domain Entities
# =============================================================================

class SubscriptionRecord(BaseModel):
    """Subscription fields embedded in a user record."""
    status: SubscriptionStatus = SubscriptionStatus.FREE
    expires_at: Optional[datetime] = None
    external_subscription_id: Optional[str] = None
    external_customer_id: Optional[str] = None

    class Config:
        from_attributes = True


class PlanInfo(BaseModel):
    """Plan and cycle inferred from a payment. Never persisted."""
    plan_name: Optional[PlanName] = None
    billing_cycle: Optional[BillingCycle] = None

    @property
    def is_complete(self) -> bool:
        return self.plan_name is not None and self.billing_cycle is not None


class OperationResult(BaseModel):
    """Soft outcome of a business operation; callers check `success`."""
    success: bool
    message: str


# =============================================================================
# Request/Response DTOs
# =============================================================================

class SubscriptionStatusResponse(BaseModel):
    """Response DTO for subscription status."""
    status: SubscriptionStatus = Field(description="Stored tier (may be stale)")
    effective_status: SubscriptionStatus = Field(description="Tier as of now")
    is_active: bool = Field(description="Whether user has an active paid tier")
    expires_at: Optional[datetime] = None
    has_recurring_charge: bool = False


class PlanPricing(BaseModel):
    """Pricing information for a single plan."""
    plan_name: PlanName
    status: SubscriptionStatus
    name: str
    monthly_price: int  # In cents
    yearly_monthly_price: int  # In cents, per month when billed yearly
    yearly_total_price: int  # In cents


class PlansResponse(BaseModel):
    """Response DTO for the plan catalog."""
    currency: str = "BRL"
    plans: list[PlanPricing]


class MessageResponse(BaseModel):
    """Generic message envelope."""
    message: str


# =============================================================================
# Plan Configuration (Business Logic)
# =============================================================================

PLAN_STATUS = {
    PlanName.PREMIUM: SubscriptionStatus.PREMIUM,
    PlanName.PROFISSIONAL: SubscriptionStatus.PROFESSIONAL,
}

PLAN_PRICES = {
    PlanName.PREMIUM: {
        "monthly": 1990,
        "yearly_monthly": 1590,
    },
    PlanName.PROFISSIONAL: {
        "monthly": 4990,
        "yearly_monthly": 3990,
    },
}

PLAN_DISPLAY_NAMES = {
    PlanName.PREMIUM: "Premium",
    PlanName.PROFISSIONAL: "Profissional",
}

CYCLE_DISPLAY_NAMES = {
    BillingCycle.MONTHLY: "Mensal",
    BillingCycle.YEARLY: "Anual",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def status_for_plan(plan_name) -> Optional[SubscriptionStatus]:
    """Map a plan name to its stored status, or None when unknown."""
    try:
        return PLAN_STATUS[PlanName(plan_name)]
    except (ValueError, KeyError):
        return None


def compute_expiry(
    billing_cycle: BillingCycle,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Compute the expiry of a paid tier starting now.

    Uses calendar arithmetic: Jan 31 + 1 month lands on the last day of
    February rather than overflowing into March.
    """
    start = _as_utc(now) if now else utcnow()

    if billing_cycle == BillingCycle.YEARLY:
        return start + relativedelta(years=1)
    return start + relativedelta(months=1)


def effective_status(
    record: Optional[SubscriptionRecord],
    now: Optional[datetime] = None,
) -> SubscriptionStatus:
    """
    Derive the tier in force right now.

    Missing expiry is treated as already expired.
    """
    if record is None or record.expires_at is None:
        return SubscriptionStatus.FREE

    current = _as_utc(now) if now else utcnow()
    if current > _as_utc(record.expires_at):
        return SubscriptionStatus.FREE

    return record.status or SubscriptionStatus.FREE


def has_paid_access(
    record: Optional[SubscriptionRecord],
    now: Optional[datetime] = None,
) -> bool:
    """Check if the record grants any paid tier right now."""
    return effective_status(record, now) != SubscriptionStatus.FREE


def plan_price_cents(plan_name: PlanName, billing_cycle: BillingCycle) -> int:
    """Amount charged for one billing period. Yearly is 12 discounted months."""
    prices = PLAN_PRICES[plan_name]
    if billing_cycle == BillingCycle.YEARLY:
        return prices["yearly_monthly"] * 12
    return prices["monthly"]


def charge_description(plan_name: PlanName, billing_cycle: BillingCycle) -> str:
    """Human-readable charge description, parseable by the plan extractor."""
    return (
        f"Assinatura Plano {PLAN_DISPLAY_NAMES[plan_name]} - "
        f"{CYCLE_DISPLAY_NAMES[billing_cycle]}"
    )


def build_plans_response() -> PlansResponse:
    """Plan catalog for pricing pages."""
    return PlansResponse(
        plans=[
            PlanPricing(
                plan_name=plan_name,
                status=PLAN_STATUS[plan_name],
                name=PLAN_DISPLAY_NAMES[plan_name],
                monthly_price=prices["monthly"],
                yearly_monthly_price=prices["yearly_monthly"],
                yearly_total_price=plan_price_cents(plan_name, BillingCycle.YEARLY),
            )
            for plan_name, prices in PLAN_PRICES.items()
        ]
    )
