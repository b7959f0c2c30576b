"""
Plan/Cycle Extraction

Infers which plan and billing cycle a payment pays for, from the structured
metadata attached at charge creation or, failing that, from the free-text
charge description ("Assinatura Plano Premium - Anual").

Nothing here raises: an unrecognised value is reported as None.
"""

from typing import Any, Mapping, Optional

from app.domain.subscription import BillingCycle, PlanInfo, PlanName


def extract_plan_info(description: Optional[str]) -> PlanInfo:
    """
    Parse plan and cycle out of a charge description.

    Matching is a case-insensitive substring test. A description that
    mentions both plans resolves to PREMIUM because it is checked first.
    """
    if not description or not isinstance(description, str):
        return PlanInfo()

    text = description.lower()

    plan_name = None
    if "premium" in text:
        plan_name = PlanName.PREMIUM
    elif "profissional" in text:
        plan_name = PlanName.PROFISSIONAL

    billing_cycle = None
    if "anual" in text:
        billing_cycle = BillingCycle.YEARLY
    elif "mensal" in text:
        billing_cycle = BillingCycle.MONTHLY

    return PlanInfo(plan_name=plan_name, billing_cycle=billing_cycle)


def _coerce_plan(value: Any) -> Optional[PlanName]:
    if not isinstance(value, str):
        return None
    try:
        return PlanName(value.strip().upper())
    except ValueError:
        return None


def _coerce_cycle(value: Any) -> Optional[BillingCycle]:
    if not isinstance(value, str):
        return None
    try:
        return BillingCycle(value.strip().lower())
    except ValueError:
        return None


def plan_info_from_metadata(metadata: Optional[Mapping[str, Any]]) -> PlanInfo:
    """Read `plan` and `billingCycle` from charge metadata."""
    if not isinstance(metadata, Mapping):
        return PlanInfo()

    return PlanInfo(
        plan_name=_coerce_plan(metadata.get("plan")),
        billing_cycle=_coerce_cycle(metadata.get("billingCycle")),
    )


def resolve_plan_info(payment: Optional[Mapping[str, Any]]) -> PlanInfo:
    """
    Combine both sources for a payment object.

    Metadata wins per field; whatever it lacks is filled from the
    description.
    """
    if not isinstance(payment, Mapping):
        return PlanInfo()

    from_metadata = plan_info_from_metadata(payment.get("metadata"))
    if from_metadata.is_complete:
        return from_metadata

    from_description = extract_plan_info(payment.get("description"))
    return PlanInfo(
        plan_name=from_metadata.plan_name or from_description.plan_name,
        billing_cycle=from_metadata.billing_cycle or from_description.billing_cycle,
    )
