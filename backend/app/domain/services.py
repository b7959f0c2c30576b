"""
Subscription Service

Applies paid plans, cancels subscriptions, and answers tier queries.

Write operations return OperationResult instead of raising: an unknown plan
or a missing user is a routine outcome of webhook processing, and
infrastructure faults are logged and folded into the same shape.
"""

import logging
from datetime import datetime
from typing import Optional, Union

from app.domain.interfaces import PaymentGateway, UserStore
from app.domain.subscription import (
    PLAN_STATUS,
    BillingCycle,
    OperationResult,
    PlanName,
    SubscriptionRecord,
    SubscriptionStatus,
    SubscriptionStatusResponse,
    compute_expiry,
    effective_status,
    status_for_plan,
    utcnow,
)
from app.infrastructure.exceptions import DatabaseError, PaymentGatewayError


logger = logging.getLogger(__name__)


def _failure(message: str) -> OperationResult:
    logger.warning(message)
    return OperationResult(success=False, message=message)


class SubscriptionService:
    """
    Service for subscription state changes.

    Handles:
    - Plan application (payment confirmed -> paid tier with expiry)
    - Cancellation (immediate demotion, best-effort upstream cancel)
    - Administrative overrides
    - Effective status reads
    """

    def __init__(self, users: UserStore, gateway: Optional[PaymentGateway] = None):
        self._users = users
        self._gateway = gateway

    async def get_subscription(self, user_id: str) -> Optional[SubscriptionRecord]:
        return await self._users.get_subscription(user_id)

    async def get_status(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[SubscriptionStatusResponse]:
        """
        Stored and effective tier for a user.

        Returns:
            SubscriptionStatusResponse or None if the user does not exist
        """
        record = await self._users.get_subscription(user_id)
        if record is None:
            return None

        current = effective_status(record, now)
        return SubscriptionStatusResponse(
            status=record.status,
            effective_status=current,
            is_active=current != SubscriptionStatus.FREE,
            expires_at=record.expires_at,
            has_recurring_charge=bool(record.external_subscription_id),
        )

    async def apply_plan(
        self,
        user_id: Optional[str],
        plan_name: Optional[Union[PlanName, str]],
        billing_cycle: Optional[Union[BillingCycle, str]],
        external_subscription_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """
        Grant a paid tier until now + one billing cycle.

        Re-applying the same plan recomputes the expiry from now, so repeated
        deliveries of one payment event converge on the same state.

        Args:
            user_id: Internal user ID
            plan_name: PREMIUM or PROFISSIONAL
            billing_cycle: monthly or yearly
            external_subscription_id: Gateway subscription handle; written
                only when given
            now: Clock override for tests

        Returns:
            OperationResult
        """
        if not user_id or not plan_name or not billing_cycle:
            return _failure("Invalid user id, plan name or billing cycle.")

        status = status_for_plan(plan_name)
        if status is None:
            return _failure(f"Unknown plan: {getattr(plan_name, 'value', plan_name)}")

        try:
            cycle = BillingCycle(billing_cycle)
        except ValueError:
            return _failure(f"Unknown billing cycle: {billing_cycle}")

        expires_at = compute_expiry(cycle, now)
        fields = {
            "subscription_status": status.value,
            "subscription_expires_at": expires_at,
        }
        if external_subscription_id:
            fields["external_subscription_id"] = external_subscription_id

        try:
            updated = await self._users.update_fields(user_id, fields)
        except DatabaseError as e:
            logger.error(f"Failed to apply plan for user {user_id}: {e.message}")
            return OperationResult(
                success=False,
                message=f"Failed to update user {user_id} in the database: {e.message}",
            )

        if not updated:
            return _failure(f"User {user_id} not found.")

        message = (
            f"Subscription for user {user_id} updated to {status.value} "
            f"until {expires_at.isoformat()}."
        )
        logger.info(message)
        return OperationResult(success=True, message=message)

    async def cancel(
        self,
        user_id: Optional[str],
        cancel_upstream: bool = True,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """
        Revert a user to the free tier immediately.

        The recurring charge is cancelled at the gateway first when one is on
        file; a gateway failure is logged and does not stop the local
        demotion.

        Args:
            user_id: Internal user ID
            cancel_upstream: False when the gateway already ended the
                subscription (inactivation webhooks)
            now: Clock override for tests
        """
        if not user_id:
            return _failure("Invalid user id.")

        try:
            record = await self._users.get_subscription(user_id)
        except DatabaseError as e:
            logger.error(f"Failed to read user {user_id}: {e.message}")
            return OperationResult(success=False, message=f"Failed to read user {user_id}.")

        if record is None:
            return _failure(f"User {user_id} not found.")

        subscription_id = record.external_subscription_id
        if cancel_upstream and subscription_id:
            await self._cancel_upstream(user_id, subscription_id)

        fields = {
            "subscription_status": SubscriptionStatus.FREE.value,
            "subscription_expires_at": now or utcnow(),
            "external_subscription_id": None,
        }
        try:
            updated = await self._users.update_fields(user_id, fields)
        except DatabaseError as e:
            logger.error(f"Failed to cancel subscription for user {user_id}: {e.message}")
            return OperationResult(
                success=False,
                message=f"Failed to update user {user_id} in the database: {e.message}",
            )

        if not updated:
            return _failure(f"User {user_id} not found.")

        message = f"Subscription for user {user_id} cancelled; user is now on the free tier."
        logger.info(message)
        return OperationResult(success=True, message=message)

    async def _cancel_upstream(self, user_id: str, subscription_id: str) -> None:
        if self._gateway is None:
            logger.warning(
                f"No gateway configured; subscription {subscription_id} of user "
                f"{user_id} left active upstream"
            )
            return

        try:
            await self._gateway.cancel_subscription(subscription_id)
        except PaymentGatewayError as e:
            logger.warning(
                f"Gateway cancel of {subscription_id} for user {user_id} failed, "
                f"continuing with local cancellation: {e.message}"
            )

    async def set_status(
        self,
        user_id: str,
        status: SubscriptionStatus,
        billing_cycle: Optional[BillingCycle] = None,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """
        Administrative override of a user's tier.

        `free` demotes immediately without touching the gateway. A paid tier
        needs a billing cycle to compute the expiry.
        """
        status = SubscriptionStatus(status)
        if status == SubscriptionStatus.FREE:
            return await self.cancel(user_id, cancel_upstream=False, now=now)

        if billing_cycle is None:
            return _failure("A billing cycle is required to grant a paid tier.")

        plan_name = next(plan for plan, mapped in PLAN_STATUS.items() if mapped == status)
        return await self.apply_plan(user_id, plan_name, billing_cycle, now=now)
