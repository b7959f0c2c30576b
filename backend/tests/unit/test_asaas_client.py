"""
Unit tests for the Asaas gateway client, using httpx.MockTransport in place
of the network.
"""

import json

import httpx
import pytest

from app.config.settings import Settings
from app.domain.subscription import BillingCycle, BillingType, PlanName
from app.infrastructure.exceptions import ConfigurationError, PaymentGatewayError
from app.infrastructure.payments.asaas_client import (
    PRODUCTION_BASE_URL,
    SANDBOX_BASE_URL,
    AsaasClient,
    AsaasConfig,
)


CONFIG = AsaasConfig(api_key="$aact_test_key", base_url=SANDBOX_BASE_URL, timeout=5.0)


def make_client(handler) -> AsaasClient:
    return AsaasClient(CONFIG, transport=httpx.MockTransport(handler))


class TestAsaasConfig:

    def test_sandbox_by_default(self):
        config = AsaasConfig.from_settings(Settings(asaas_api_key="$aact_prod_looking_key"))
        assert config.base_url == SANDBOX_BASE_URL

    def test_production_selected_explicitly(self):
        config = AsaasConfig.from_settings(
            Settings(asaas_api_key="key", asaas_environment="production")
        )
        assert config.base_url == PRODUCTION_BASE_URL

    def test_explicit_base_url_wins(self):
        config = AsaasConfig.from_settings(
            Settings(asaas_api_key="key", asaas_base_url="http://localhost:9000/v3/")
        )
        assert config.base_url == "http://localhost:9000/v3"

    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            AsaasConfig.from_settings(Settings(asaas_api_key=None))


class TestRequests:

    async def test_auth_header_and_path(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["token"] = request.headers.get("access_token")
            return httpx.Response(200, json={"id": "cus_1", "externalReference": "u1"})

        customer = await make_client(handler).get_customer("cus_1")

        assert customer["id"] == "cus_1"
        assert seen == {"path": "/api/v3/customers/cus_1", "token": "$aact_test_key"}

    async def test_error_description_surfaces(self):
        def handler(request):
            return httpx.Response(
                400,
                json={"errors": [{"code": "invalid_customer", "description": "Cliente inválido"}]},
            )

        with pytest.raises(PaymentGatewayError) as exc_info:
            await make_client(handler).get_payment("pay_1")

        assert exc_info.value.message == "Cliente inválido"
        assert exc_info.value.status_code == 400

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PaymentGatewayError) as exc_info:
            await make_client(handler).cancel_subscription("sub_1")

        assert exc_info.value.status_code is None

    async def test_cancel_subscription_uses_delete(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(200, json={"deleted": True, "id": "sub_1"})

        result = await make_client(handler).cancel_subscription("sub_1")

        assert result["deleted"] is True
        assert seen == {"method": "DELETE", "path": "/api/v3/subscriptions/sub_1"}


class TestCustomerLookups:

    async def test_external_reference(self):
        def handler(request):
            return httpx.Response(200, json={"id": "cus_1", "externalReference": "u1"})

        assert await make_client(handler).get_customer_external_reference("cus_1") == "u1"

    async def test_external_reference_soft_on_404(self):
        def handler(request):
            return httpx.Response(404, json={"errors": [{"description": "Not found"}]})

        assert await make_client(handler).get_customer_external_reference("cus_x") is None

    async def test_find_by_tax_id_strips_formatting(self):
        seen = {}

        def handler(request):
            seen["cpf"] = request.url.params.get("cpfCnpj")
            return httpx.Response(200, json={"data": [{"id": "cus_5"}], "totalCount": 1})

        customer = await make_client(handler).find_customer_by_tax_id("123.456.789-09")

        assert customer == {"id": "cus_5"}
        assert seen["cpf"] == "12345678909"

    async def test_find_by_tax_id_no_match(self):
        def handler(request):
            return httpx.Response(200, json={"data": [], "totalCount": 0})

        assert await make_client(handler).find_customer_by_tax_id("12345678909") is None


class TestCharges:

    async def test_create_payment_payload(self):
        captured = {}

        def handler(request):
            captured.update(json.loads(request.content))
            return httpx.Response(200, json={"id": "pay_1", "status": "PENDING"})

        payment = await make_client(handler).create_payment(
            customer_id="cus_1",
            user_id="u1",
            billing_type=BillingType.PIX,
            plan_name=PlanName.PREMIUM,
            billing_cycle=BillingCycle.YEARLY,
            value_cents=19080,
        )

        assert payment["id"] == "pay_1"
        assert captured["value"] == 190.8
        assert captured["billingType"] == "PIX"
        assert captured["externalReference"] == "u1"
        assert captured["metadata"] == {"userId": "u1", "plan": "PREMIUM", "billingCycle": "yearly"}
        assert captured["description"] == "Assinatura Plano Premium - Anual"

    async def test_create_subscription_payload(self):
        captured = {}

        def handler(request):
            captured.update(json.loads(request.content))
            return httpx.Response(200, json={"id": "sub_1", "status": "ACTIVE"})

        await make_client(handler).create_subscription(
            customer_id="cus_1",
            user_id="u1",
            plan_name=PlanName.PROFISSIONAL,
            billing_cycle=BillingCycle.MONTHLY,
            value_cents=4990,
            credit_card_token="tok_abc",
            remote_ip="203.0.113.5",
        )

        assert captured["cycle"] == "MONTHLY"
        assert captured["billingType"] == "CREDIT_CARD"
        assert captured["creditCardToken"] == "tok_abc"
        assert captured["value"] == 49.9
