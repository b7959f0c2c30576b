"""
SQLModel ORM Models for Nutrinea Billing

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from app.infrastructure.db.models.base import (
    TimestampMixin,
    UUIDMixin,
)
from app.infrastructure.db.models.user import (
    SUBSCRIPTION_FIELDS,
    UserModel,
)
from app.infrastructure.db.models.webhook_log import (
    WebhookLog,
    WebhookLogRead,
)


__all__ = [
    # Base
    "TimestampMixin",
    "UUIDMixin",
    # Users
    "SUBSCRIPTION_FIELDS",
    "UserModel",
    # Webhook audit
    "WebhookLog",
    "WebhookLogRead",
]
