"""Create plans and subscriptions tables

Revision ID: 3f2a9c1d7b10
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'plans',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_monthly_cents', sa.Integer(), nullable=False),
        sa.Column('provider_price_id', sa.String(), nullable=True),
        sa.Column('max_clients', sa.Integer(), nullable=False),
        sa.Column('max_agents', sa.Integer(), nullable=False),
        sa.Column('max_team_members', sa.Integer(), nullable=False),
        sa.Column('extras', sa.JSON(), nullable=False),
        sa.Column('trial_duration_days', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('modified_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider_price_id'),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('plan_id', sa.Uuid(), nullable=True),
        sa.Column('provider_customer_id', sa.String(), nullable=True),
        sa.Column('provider_subscription_id', sa.String(), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('provider_status', sa.String(length=50), nullable=True),
        sa.Column('current_period_start', sa.DateTime(timezone=False), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=False), nullable=True),
        sa.Column('trial_ends_at', sa.DateTime(timezone=False), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=False), nullable=True),
        sa.Column('grace_period_ends_at', sa.DateTime(timezone=False), nullable=True),
        sa.Column('billing_email', sa.String(), nullable=True),
        sa.Column('custom_pricing', sa.Boolean(), nullable=False),
        sa.Column('snapshot_plan_name', sa.String(), nullable=True),
        sa.Column('snapshot_price_monthly_cents', sa.Integer(), nullable=True),
        sa.Column('snapshot_max_clients', sa.Integer(), nullable=True),
        sa.Column('snapshot_max_agents', sa.Integer(), nullable=True),
        sa.Column('snapshot_max_team_members', sa.Integer(), nullable=True),
        sa.Column('snapshot_extras', sa.JSON(), nullable=True),
        sa.Column('snapshot_created_at', sa.DateTime(timezone=False), nullable=True),
        sa.Column('last_reminder_window_hours', sa.Integer(), nullable=True),
        sa.Column('last_reminder_sent_at', sa.DateTime(timezone=False), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('modified_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id'),
        sa.UniqueConstraint('provider_subscription_id'),
    )
    op.create_index(
        'ix_subscriptions_status_trial_ends_at',
        'subscriptions',
        ['status', 'trial_ends_at'],
    )


def downgrade() -> None:
    op.drop_index('ix_subscriptions_status_trial_ends_at', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_table('plans')
