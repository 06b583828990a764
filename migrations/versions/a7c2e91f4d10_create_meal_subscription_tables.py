"""create meal subscription tables

Revision ID: a7c2e91f4d10
Revises:
Create Date: 2026-10-12 11:20:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = 'a7c2e91f4d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(JSONB(), 'postgresql')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'meal_subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('delivery_days', JSON_TYPE, nullable=False),
        sa.Column('meals_per_week', sa.Integer(), nullable=False),
        sa.Column('meals_per_day', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('pause_limit_days', sa.Integer(), nullable=True, server_default='30'),
        sa.Column('total_paused_days', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('pause_periods', JSON_TYPE, nullable=True),
        sa.Column('pause_start_date', sa.Date(), nullable=True),
        sa.Column('pause_end_date', sa.Date(), nullable=True),
        sa.Column('meals_delivered', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('meals_cancelled', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('carry_forward_meals', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('cancellation_count', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    # Auto-resume scans paused subscriptions daily
    op.create_index('ix_meal_subscriptions_status', 'meal_subscriptions', ['status'])

    op.create_table(
        'meal_deliveries',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('subscription_id', sa.Integer(), nullable=False),
        sa.Column('delivery_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='scheduled'),
        sa.Column('meals_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('subscription_id', 'delivery_date', name='uq_delivery_sub_date'),
    )
    op.create_index('ix_meal_deliveries_subscription_id', 'meal_deliveries', ['subscription_id'])
    op.create_index('ix_delivery_sub_status', 'meal_deliveries', ['subscription_id', 'status'])

    op.create_table(
        'holidays',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_holidays_date', 'holidays', ['date'])

    op.create_table(
        'subscription_settings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('cancellation_cutoff_hours', sa.Integer(), nullable=True),
        sa.Column('max_cancellations_per_month', sa.Integer(), nullable=True),
        sa.Column('carry_forward_limit', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('subscription_settings')
    op.drop_index('ix_holidays_date', table_name='holidays')
    op.drop_table('holidays')
    op.drop_index('ix_delivery_sub_status', table_name='meal_deliveries')
    op.drop_index('ix_meal_deliveries_subscription_id', table_name='meal_deliveries')
    op.drop_table('meal_deliveries')
    op.drop_index('ix_meal_subscriptions_status', table_name='meal_subscriptions')
    op.drop_table('meal_subscriptions')
