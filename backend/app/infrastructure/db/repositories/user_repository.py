"""
User Repository

Data access for the user records that carry subscription state.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import SubscriptionRecord
from app.infrastructure.db.models.user import SUBSCRIPTION_FIELDS, UserModel
from app.infrastructure.db.repositories.base_repository import BaseRepository
from app.infrastructure.exceptions import DatabaseError


logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[UserModel]):
    """
    Repository for user lookups and partial subscription updates.

    Writes are single-statement UPDATEs touching only the columns supplied,
    so concurrent writers of other columns are never clobbered.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(UserModel, session)

    async def get_subscription(self, user_id: str) -> Optional[SubscriptionRecord]:
        """Get the subscription projection of a user, or None if unknown."""
        user = await self.get_by_id(user_id)
        if user is None:
            return None
        return user.to_subscription_record()

    async def find_by_external_customer_id(
        self,
        external_customer_id: str,
    ) -> Optional[UserModel]:
        """
        Reverse lookup by gateway customer ID.

        Returns the first match if several users share the customer.
        """
        stmt = (
            select(UserModel)
            .where(UserModel.external_customer_id == external_customer_id)
            .limit(1)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise DatabaseError(
                "Failed to look up user by customer id",
                operation="select",
                table=self.table_name,
                original_error=e,
            ) from e
        return result.scalars().first()

    async def update_fields(self, user_id: str, fields: Dict[str, Any]) -> bool:
        """
        Partially update a user.

        Args:
            user_id: User primary key
            fields: Column -> value. Columns outside the subscription and
                billing-profile set are rejected.

        Returns:
            True if a row was updated, False if the user does not exist
        """
        allowed = SUBSCRIPTION_FIELDS | {"tax_id"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Refusing to update non-billing fields: {sorted(unknown)}")

        if not fields:
            return await self.get_by_id(user_id) is not None

        stmt = (
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise DatabaseError(
                f"Failed to update user {user_id}",
                operation="update",
                table=self.table_name,
                original_error=e,
            ) from e

        await self._commit("update")

        updated = result.rowcount > 0
        if updated:
            logger.info(f"Updated user {user_id}: {sorted(fields)}")
        return updated
