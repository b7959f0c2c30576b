"""
Application Settings for Nutrinea Billing

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Literal, Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    ASAAS_ENVIRONMENT selects the payment gateway base URL:
    - sandbox: https://sandbox.asaas.com/api/v3 (default)
    - production: https://api.asaas.com/v3
    ASAAS_BASE_URL overrides both when set.
    """

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    frontend_url: str = "http://localhost:3000"
    allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Asaas Payment Gateway
    asaas_api_key: Optional[str] = None
    asaas_environment: Literal["sandbox", "production"] = "sandbox"
    asaas_base_url: Optional[str] = None
    asaas_timeout_seconds: float = 15.0

    # Checkout
    pix_due_days: int = 3
    subscription_first_due_days: int = 1

    # Authentication (Firebase ID tokens)
    firebase_project_id: Optional[str] = None
    auth_jwt_secret: Optional[str] = None

    # Admin
    admin_api_key: Optional[str] = None

    # Database Configuration (SQLModel/SQLAlchemy)
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_gateway_keys(self) -> "Settings":
        """Require the gateway key outside development."""
        if self.environment.lower() == "production" and not self.asaas_api_key:
            raise ValueError("ASAAS_API_KEY required when ENVIRONMENT=production")

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
