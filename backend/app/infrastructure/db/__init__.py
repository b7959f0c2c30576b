"""
Database Infrastructure Package for Nutrinea Billing

Exports database utilities, models, and repositories.
"""

from app.infrastructure.db.database import (
    DatabaseManager,
    get_db_manager,
    get_session,
    init_db,
    close_db,
)

from app.infrastructure.db.dependencies import (
    SessionDep,
    get_user_repository,
    get_webhook_log_repository,
    UserRepoDep,
    WebhookLogRepoDep,
)


__all__ = [
    # Database management
    "DatabaseManager",
    "get_db_manager",
    "get_session",
    "init_db",
    "close_db",
    # Dependencies
    "SessionDep",
    "get_user_repository",
    "get_webhook_log_repository",
    "UserRepoDep",
    "WebhookLogRepoDep",
]
