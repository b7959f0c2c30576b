"""
Repository Layer for Nutrinea Billing

Exports all repository classes for dependency injection.
"""

from app.infrastructure.db.repositories.base_repository import BaseRepository
from app.infrastructure.db.repositories.user_repository import UserRepository
from app.infrastructure.db.repositories.webhook_log_repository import (
    WebhookLogRepository,
)


__all__ = [
    "BaseRepository",
    "UserRepository",
    "WebhookLogRepository",
]
