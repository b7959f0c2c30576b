"""
Dependency Injection Providers for Nutrinea Billing

Provides FastAPI dependencies for database sessions and repositories.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.database import get_session
from app.infrastructure.db.repositories import (
    UserRepository,
    WebhookLogRepository,
)


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_user_repository(
    session: SessionDep,
) -> AsyncGenerator[UserRepository, None]:
    """
    Dependency provider for UserRepository.

    Usage:
        @router.get("/me")
        async def me(repo: UserRepository = Depends(get_user_repository)):
            ...
    """
    yield UserRepository(session)


async def get_webhook_log_repository(
    session: SessionDep,
) -> AsyncGenerator[WebhookLogRepository, None]:
    """
    Dependency provider for WebhookLogRepository.
    """
    yield WebhookLogRepository(session)


# Type aliases for repository dependencies
UserRepoDep = Annotated[
    UserRepository,
    Depends(get_user_repository)
]
WebhookLogRepoDep = Annotated[
    WebhookLogRepository,
    Depends(get_webhook_log_repository)
]
