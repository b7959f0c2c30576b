"""
Webhook Log Model

Append-only audit trail of every inbound gateway webhook.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import Column, DateTime, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from app.infrastructure.db.models.base import UUIDMixin


class WebhookLog(UUIDMixin, table=True):
    """One row per webhook delivery. Never updated or deleted."""

    __tablename__ = "webhook_logs"

    payload: Optional[dict] = Field(
        default=None,
        sa_column=Column(JSONB, nullable=True),
        description="Event body as received"
    )

    status: str = Field(
        ...,
        sa_column=Column(String(10), nullable=False, index=True),
        description="SUCCESS or FAILURE"
    )

    details: str = Field(
        default="",
        sa_column=Column(Text, nullable=False),
        description="Human-readable outcome"
    )

    created_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            nullable=False,
            index=True,
        ),
        description="When this delivery was logged (assigned by the database)"
    )


class WebhookLogRead(SQLModel):
    """Schema for reading an audit entry."""
    id: UUID
    payload: Optional[Any] = None
    status: str
    details: str
    created_at: datetime
