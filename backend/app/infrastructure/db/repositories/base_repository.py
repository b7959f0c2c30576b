"""
Base Repository for Nutrinea Billing

Generic async repository with the read operations shared by all tables.
Writes are table-specific (the audit log is insert-only, users only get
partial subscription updates), so they live on the concrete repositories.
"""

from typing import TypeVar, Generic, Optional, Type, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from app.infrastructure.exceptions import DatabaseError


ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic async repository.

    Args:
        model: The SQLModel class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    @property
    def table_name(self) -> str:
        return getattr(self._model, "__tablename__", self._model.__name__)

    async def get_by_id(self, id: Any) -> Optional[ModelType]:
        """
        Get a single record by its primary key.

        Args:
            id: Primary key

        Returns:
            Model instance or None if not found

        Raises:
            DatabaseError: If the query fails
        """
        try:
            return await self._session.get(self._model, id)
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise DatabaseError(
                f"Failed to read {self.table_name} {id}",
                operation="select",
                table=self.table_name,
                original_error=e,
            ) from e

    async def _commit(self, operation: str) -> None:
        """Commit the current unit of work, rolling back on failure."""
        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise DatabaseError(
                f"Failed to {operation} on {self.table_name}",
                operation=operation,
                table=self.table_name,
                original_error=e,
            ) from e
