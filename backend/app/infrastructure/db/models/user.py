"""
User Database Model

SQLModel table for user records. The identity system owns the row; the
billing code only writes the subscription columns.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime
from sqlmodel import Field

from app.domain.subscription import SubscriptionRecord, SubscriptionStatus
from app.infrastructure.db.models.base import TimestampMixin


SUBSCRIPTION_FIELDS = frozenset({
    "subscription_status",
    "subscription_expires_at",
    "external_subscription_id",
    "external_customer_id",
})


class UserModel(TimestampMixin, table=True):
    """
    Users table.

    Maps to the 'users' table in PostgreSQL. `id` is the auth uid.
    """

    __tablename__ = "users"

    id: str = Field(primary_key=True, max_length=128)
    email: Optional[str] = Field(default=None, max_length=255)
    full_name: Optional[str] = Field(default=None, max_length=255)
    role: str = Field(default="patient", max_length=20)
    tax_id: Optional[str] = Field(default=None, max_length=20)

    # Subscription
    subscription_status: str = Field(default=SubscriptionStatus.FREE.value, max_length=20)
    subscription_expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )

    # Asaas IDs
    external_subscription_id: Optional[str] = Field(default=None, index=True, max_length=255)
    external_customer_id: Optional[str] = Field(default=None, index=True, max_length=255)

    def to_subscription_record(self) -> SubscriptionRecord:
        """Project the subscription columns into the domain record."""
        try:
            status = SubscriptionStatus(self.subscription_status)
        except ValueError:
            status = SubscriptionStatus.FREE

        return SubscriptionRecord(
            status=status,
            expires_at=self.subscription_expires_at,
            external_subscription_id=self.external_subscription_id,
            external_customer_id=self.external_customer_id,
        )
