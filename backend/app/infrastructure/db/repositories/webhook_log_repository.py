"""
Webhook Log Repository

Insert-only store for the webhook audit trail.
"""

from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import WebhookLogStatus
from app.infrastructure.db.models.webhook_log import WebhookLog
from app.infrastructure.db.repositories.base_repository import BaseRepository
from app.infrastructure.exceptions import DatabaseError


class WebhookLogRepository(BaseRepository[WebhookLog]):
    """Repository for webhook audit entries. No update or delete."""

    def __init__(self, session: AsyncSession):
        super().__init__(WebhookLog, session)

    async def add(
        self,
        payload: Any,
        status: WebhookLogStatus,
        details: str,
    ) -> WebhookLog:
        """Append an entry and commit it immediately."""
        entry = WebhookLog(
            payload=payload if isinstance(payload, dict) else {"value": payload},
            status=WebhookLogStatus(status).value,
            details=details,
        )
        self._session.add(entry)
        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise DatabaseError(
                "Failed to insert webhook log",
                operation="insert",
                table=self.table_name,
                original_error=e,
            ) from e

        await self._commit("insert")
        await self._session.refresh(entry)
        return entry

    async def list_recent(
        self,
        limit: int = 50,
        status: Optional[WebhookLogStatus] = None,
    ) -> List[WebhookLog]:
        """Newest entries first, optionally filtered by status."""
        stmt = select(WebhookLog).order_by(WebhookLog.created_at.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(WebhookLog.status == WebhookLogStatus(status).value)

        result = await self._session.execute(stmt)
        return list(result.scalars().all())
