"""
Unit tests for Pydantic Settings configuration.

Tests settings loading and validation.
"""

import pytest
from pydantic import ValidationError

from app.config.settings import Settings


class TestSettings:
    """Tests for Settings configuration."""

    def test_settings_has_defaults(self):
        """Settings should have sensible defaults."""
        from app.config.settings import settings

        assert settings.environment in ("development", "production", "testing")
        assert settings.asaas_environment in ("sandbox", "production")
        assert settings.pix_due_days >= 1
        assert settings.asaas_timeout_seconds > 0

    def test_loads_from_env(self, monkeypatch):
        monkeypatch.setenv("ASAAS_API_KEY", "$aact_from_env")
        monkeypatch.setenv("ASAAS_ENVIRONMENT", "production")
        monkeypatch.setenv("PIX_DUE_DAYS", "5")

        settings = Settings()

        assert settings.asaas_api_key == "$aact_from_env"
        assert settings.asaas_environment == "production"
        assert settings.pix_due_days == 5

    def test_invalid_gateway_environment_rejected(self):
        with pytest.raises(ValidationError):
            Settings(asaas_environment="staging")

    def test_production_requires_gateway_key(self):
        with pytest.raises(ValidationError):
            Settings(environment="production", asaas_api_key=None)

    def test_is_production_property(self):
        settings = Settings(environment="production", asaas_api_key="key")
        assert settings.is_production is True
        assert settings.is_development is False

    def test_allowed_origins_includes_localhost(self):
        settings = Settings()
        assert "http://localhost:3000" in settings.allowed_origins
