"""Create webhook_logs audit table

Revision ID: 0002_webhook_logs
Revises: 0001_users
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0002_webhook_logs'
down_revision: Union[str, None] = '0001_users'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Append-only log of every Asaas webhook delivery."""

    op.create_table(
        'webhook_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('payload', postgresql.JSONB()),
        sa.Column('status', sa.String(10), nullable=False),
        sa.Column('details', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index('ix_webhook_logs_status', 'webhook_logs', ['status'])
    op.create_index('ix_webhook_logs_created_at', 'webhook_logs', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_webhook_logs_created_at', table_name='webhook_logs')
    op.drop_index('ix_webhook_logs_status', table_name='webhook_logs')
    op.drop_table('webhook_logs')
