"""
Payments Infrastructure Module

Asaas payment gateway client.
"""

from app.infrastructure.payments.asaas_client import (
    AsaasClient,
    AsaasConfig,
    get_asaas_client,
)

__all__ = ["AsaasClient", "AsaasConfig", "get_asaas_client"]
