"""
Unit tests for WebhookDispatcher: audit logging, routing and the
end-to-end reconciliation scenarios.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from app.domain.identity import IdentityResolver
from app.domain.services import SubscriptionService
from app.domain.subscription import WebhookLogStatus
from app.domain.webhook_dispatcher import (
    EventKind,
    WebhookDispatcher,
    classify_event,
)
from app.infrastructure.exceptions import PaymentGatewayError


UTC = timezone.utc


@pytest.fixture
def dispatcher(user_store, log_store, mock_gateway, now):
    return WebhookDispatcher(
        SubscriptionService(user_store, mock_gateway),
        IdentityResolver(user_store, mock_gateway),
        log_store,
        clock=lambda: now,
    )


def _body(event) -> bytes:
    return json.dumps(event).encode()


class TestClassifyEvent:

    @pytest.mark.parametrize("name", ["PAYMENT_RECEIVED", "PAYMENT_CONFIRMED", "CHECKOUT_PAID"])
    def test_payment_family(self, name):
        assert classify_event({"event": name}) == EventKind.PAYMENT

    @pytest.mark.parametrize("name", ["SUBSCRIPTION_INACTIVATED", "SUBSCRIPTION_DELETED"])
    def test_inactivation_family(self, name):
        assert classify_event({"event": name}) == EventKind.INACTIVATION

    def test_updated_to_inactive(self):
        event = {"event": "SUBSCRIPTION_UPDATED", "subscription": {"status": "INACTIVE"}}
        assert classify_event(event) == EventKind.INACTIVATION

    def test_updated_still_active(self):
        event = {"event": "SUBSCRIPTION_UPDATED", "subscription": {"status": "ACTIVE"}}
        assert classify_event(event) == EventKind.IGNORED

    def test_other_events_ignored(self):
        assert classify_event({"event": "PAYMENT_OVERDUE"}) == EventKind.IGNORED


class TestScenarios:

    async def test_a_metadata_attributed_yearly_premium(self, dispatcher, user_store, log_store, now):
        user_store.add_user("u1")
        event = {
            "event": "PAYMENT_RECEIVED",
            "payment": {"metadata": {"userId": "u1", "plan": "PREMIUM", "billingCycle": "yearly"}},
        }

        outcome = await dispatcher.dispatch_raw(_body(event))

        assert outcome.status_code == 200
        user = user_store.users["u1"]
        assert user.subscription_status == "premium"
        assert user.subscription_expires_at == datetime(2025, 1, 31, 12, 0, tzinfo=UTC)

    async def test_b_description_and_reference(self, dispatcher, user_store, now):
        user_store.add_user("u2")
        event = {
            "event": "PAYMENT_RECEIVED",
            "payment": {
                "description": "Assinatura PROFISSIONAL Mensal - X",
                "externalReference": "u2",
            },
        }

        outcome = await dispatcher.dispatch_raw(_body(event))

        assert outcome.status_code == 200
        user = user_store.users["u2"]
        assert user.subscription_status == "professional"
        assert user.subscription_expires_at == datetime(2024, 2, 29, 12, 0, tzinfo=UTC)

    async def test_c_inactivation_demotes_immediately(self, dispatcher, user_store, mock_gateway, now):
        user_store.add_user(
            "u3",
            subscription_status="premium",
            subscription_expires_at=datetime(2024, 12, 31, tzinfo=UTC),
            external_subscription_id="sub_3",
        )
        event = {"event": "SUBSCRIPTION_INACTIVATED", "subscription": {"externalReference": "u3"}}

        outcome = await dispatcher.dispatch_raw(_body(event))

        assert outcome.status_code == 200
        user = user_store.users["u3"]
        assert user.subscription_status == "free"
        assert user.subscription_expires_at == now
        assert user.external_subscription_id is None
        mock_gateway.cancel_subscription.assert_not_awaited()

    async def test_d_malformed_json(self, dispatcher, log_store, user_store):
        outcome = await dispatcher.dispatch_raw(b"{not json")

        assert outcome.status_code == 400
        assert len(log_store.entries) == 1
        entry = log_store.entries[0]
        assert entry.status == "FAILURE"
        assert entry.payload == {"body": "Invalid JSON"}
        assert user_store.updates == []

    async def test_d_too_deeply_nested_json(self, dispatcher, log_store, user_store):
        outcome = await dispatcher.dispatch_raw(b"[" * 200000)

        assert outcome.status_code == 400
        assert [e.status for e in log_store.entries] == ["FAILURE"]
        assert log_store.entries[0].payload == {"body": "Invalid JSON"}
        assert user_store.updates == []

    async def test_e_unattributable_customer(self, dispatcher, user_store, log_store, mock_gateway):
        user_store.add_user("someone-else", external_customer_id="cus_other")
        mock_gateway.get_customer_external_reference.side_effect = PaymentGatewayError(
            "Customer not found", operation="get_customer", status_code=404
        )
        event = {
            "event": "PAYMENT_CONFIRMED",
            "payment": {"customer": "cus_unknown", "description": "Plano Premium - Mensal"},
        }

        outcome = await dispatcher.dispatch_raw(_body(event))

        assert outcome.status_code == 200
        assert len(log_store.with_status(WebhookLogStatus.FAILURE)) == 1
        assert user_store.updates == []
        mock_gateway.get_customer_external_reference.assert_awaited_once_with("cus_unknown")


class TestAlwaysLogs:

    @pytest.mark.parametrize("event", [
        {"event": "PAYMENT_RECEIVED", "payment": {"metadata": {"userId": "u1"}}},
        {"event": "PAYMENT_RECEIVED", "payment": {"externalReference": "ghost"}},
        {"event": "PAYMENT_RECEIVED"},
        {"event": "SUBSCRIPTION_DELETED", "subscription": {}},
        {"event": "PAYMENT_OVERDUE", "payment": {"id": "pay_1"}},
    ])
    async def test_exactly_one_receipt_entry(self, dispatcher, user_store, log_store, event):
        user_store.add_user("u1")

        outcome = await dispatcher.dispatch_raw(_body(event))

        assert outcome.status_code == 200
        receipts = [
            e for e in log_store.with_status(WebhookLogStatus.SUCCESS)
            if event["event"] in e.details
        ]
        assert len(receipts) == 1

    async def test_receipt_logged_before_processing(self, dispatcher, user_store, log_store):
        user_store.add_user("u1")
        event = {
            "event": "PAYMENT_RECEIVED",
            "payment": {"metadata": {"userId": "u1", "plan": "PREMIUM", "billingCycle": "monthly"}},
        }

        await dispatcher.dispatch_raw(_body(event))

        assert log_store.entries[0].details == "Event 'PAYMENT_RECEIVED' received and logged."
        assert log_store.entries[-1].status == "SUCCESS"
        assert "premium" in log_store.entries[-1].details

    async def test_missing_event_field(self, dispatcher, log_store):
        outcome = await dispatcher.dispatch_raw(_body({"payment": {"id": "pay_1"}}))

        assert outcome.status_code == 200
        assert [e.status for e in log_store.entries] == ["FAILURE"]

    async def test_non_object_json_is_acknowledged(self, dispatcher, log_store):
        outcome = await dispatcher.dispatch_raw(b"[1, 2, 3]")

        assert outcome.status_code == 200
        assert [e.status for e in log_store.entries] == ["FAILURE"]

    async def test_unknown_plan_logs_failure(self, dispatcher, user_store, log_store):
        user_store.add_user("u1")
        event = {
            "event": "PAYMENT_RECEIVED",
            "payment": {"externalReference": "u1", "description": "Consulta avulsa"},
        }

        await dispatcher.dispatch_raw(_body(event))

        assert user_store.updates == []
        assert log_store.entries[-1].status == "FAILURE"

    async def test_checkout_paid_uses_checkout_object(self, dispatcher, user_store):
        user_store.add_user("u1")
        event = {
            "event": "CHECKOUT_PAID",
            "checkout": {"externalReference": "u1", "description": "Plano Premium - Anual"},
        }

        await dispatcher.dispatch_raw(_body(event))

        assert user_store.users["u1"].subscription_status == "premium"


class TestErrorContainment:

    async def test_handler_exception_is_contained(self, user_store, log_store, mock_gateway, now):
        resolver = IdentityResolver(user_store, mock_gateway)
        resolver.resolve_user_id = AsyncMock(side_effect=RuntimeError("boom"))
        dispatcher = WebhookDispatcher(
            SubscriptionService(user_store, mock_gateway), resolver, log_store, clock=lambda: now
        )

        outcome = await dispatcher.dispatch_raw(_body({"event": "PAYMENT_RECEIVED", "payment": {}}))

        assert outcome.status_code == 200
        assert log_store.entries[-1].status == "FAILURE"
        assert "boom" in log_store.entries[-1].details

    async def test_audit_store_failure_is_contained(self, user_store, mock_gateway, now):
        logs = AsyncMock()
        logs.add.side_effect = RuntimeError("log store down")
        user_store.add_user("u1")
        dispatcher = WebhookDispatcher(
            SubscriptionService(user_store, mock_gateway),
            IdentityResolver(user_store, mock_gateway),
            logs,
            clock=lambda: now,
        )
        event = {
            "event": "PAYMENT_RECEIVED",
            "payment": {"metadata": {"userId": "u1", "plan": "PREMIUM", "billingCycle": "monthly"}},
        }

        outcome = await dispatcher.dispatch_raw(_body(event))

        assert outcome.status_code == 200
        assert user_store.users["u1"].subscription_status == "premium"

    async def test_database_failure_logged_as_failure(self, dispatcher, user_store, log_store):
        user_store.add_user("u1")
        user_store.fail_updates = True
        event = {
            "event": "PAYMENT_RECEIVED",
            "payment": {"metadata": {"userId": "u1", "plan": "PREMIUM", "billingCycle": "monthly"}},
        }

        outcome = await dispatcher.dispatch_raw(_body(event))

        assert outcome.status_code == 200
        assert log_store.entries[-1].status == "FAILURE"
