"""Create users table

Revision ID: 0001_users
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_users'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users table carrying subscription state."""

    op.create_table(
        'users',
        sa.Column('id', sa.String(128), primary_key=True),
        sa.Column('email', sa.String(255)),
        sa.Column('full_name', sa.String(255)),
        sa.Column('role', sa.String(20), server_default='patient', nullable=False),
        sa.Column('tax_id', sa.String(20)),

        # Subscription
        sa.Column('subscription_status', sa.String(20), server_default='free', nullable=False),
        sa.Column('subscription_expires_at', sa.DateTime(timezone=True)),

        # Asaas IDs
        sa.Column('external_subscription_id', sa.String(255)),
        sa.Column('external_customer_id', sa.String(255)),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index('ix_users_external_subscription_id', 'users', ['external_subscription_id'])
    op.create_index('ix_users_external_customer_id', 'users', ['external_customer_id'])


def downgrade() -> None:
    op.drop_index('ix_users_external_customer_id', table_name='users')
    op.drop_index('ix_users_external_subscription_id', table_name='users')
    op.drop_table('users')
