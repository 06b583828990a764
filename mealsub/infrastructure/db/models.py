"""
SQLAlchemy ORM models
"""
from datetime import date as date_type, datetime as datetime_type
from sqlalchemy import String, DateTime, Integer, Text, TIMESTAMP, Date, func, Boolean, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import JSONB

from mealsub.infrastructure.db.session import Base


class MealSubscriptionModel(Base):
    """
    Meal subscription: delivery schedule, pause quota and meal counters

    Written only through SubscriptionStateMachine (via SqlAlchemyGateway);
    never deleted, 'cancelled' is terminal.
    """
    __tablename__ = "meal_subscriptions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active", index=True)  # active / paused / cancelled
    delivery_days: Mapped[list] = mapped_column(JSONB, nullable=False)  # ["M", "W", "F"]
    meals_per_week: Mapped[int] = mapped_column(Integer, nullable=False)
    meals_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    start_date: Mapped[date_type] = mapped_column(Date, nullable=False)

    # Pause accounting
    pause_limit_days: Mapped[int | None] = mapped_column(Integer, nullable=True, default=30, server_default="30")
    total_paused_days: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0, server_default="0")
    pause_periods: Mapped[list | None] = mapped_column(JSONB, nullable=True)  # [{"start_date", "end_date"}]
    pause_start_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    pause_end_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)

    # Meal counters
    meals_delivered: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0, server_default="0")
    meals_cancelled: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0, server_default="0")
    carry_forward_meals: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0, server_default="0")
    cancellation_count: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0, server_default="0")

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime | None] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True
    )


class MealDeliveryModel(Base):
    """One row per subscription per scheduled delivery date"""
    __tablename__ = "meal_deliveries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    subscription_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> meal_subscriptions
    delivery_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="scheduled", server_default="scheduled")  # scheduled / delivered / cancelled
    meals_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    cancelled_at: Mapped[datetime_type | None] = mapped_column(DateTime, nullable=True)  # local wall-clock time
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint('subscription_id', 'delivery_date', name='uq_delivery_sub_date'),
        Index('ix_delivery_sub_status', 'subscription_id', 'status'),
    )


class HolidayModel(Base):
    """No deliveries on active holidays"""
    __tablename__ = "holidays"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class SubscriptionSettingsModel(Base):
    """Global cancellation rules (single row); NULL columns fall back to config"""
    __tablename__ = "subscription_settings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    cancellation_cutoff_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_cancellations_per_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    carry_forward_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)

    updated_at: Mapped[DateTime | None] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True
    )
