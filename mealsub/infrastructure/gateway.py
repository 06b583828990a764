"""
Persistence gateway - loads and saves what the engine works on

The engine itself never touches the database; use cases call the gateway
around it. SqlAlchemyGateway is the production implementation.
"""
from datetime import date
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from mealsub.config import get_settings
from mealsub.domain.cancellation_ledger import DeliveryRecord, SubscriptionSettings
from mealsub.domain.status import STATUS_PAUSED
from mealsub.domain.subscription import Subscription
from mealsub.infrastructure.db.models import (
    MealSubscriptionModel, MealDeliveryModel, HolidayModel, SubscriptionSettingsModel,
)


class NotFoundError(LookupError):
    """Referenced row does not exist (NOT_FOUND)"""
    pass


class SubscriptionNotFoundError(NotFoundError):
    pass


class DeliveryNotFoundError(NotFoundError):
    pass


class PersistenceGateway(Protocol):
    def load_subscription(self, subscription_id: int, for_update: bool = False) -> Subscription: ...

    def save_subscription(self, subscription: Subscription) -> None: ...

    def load_holidays(self, from_date: date) -> set[date]: ...

    def load_settings(self) -> SubscriptionSettings: ...

    def load_delivery_records(
        self,
        subscription_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[DeliveryRecord]: ...

    def save_delivery_record(self, record: DeliveryRecord) -> None: ...


_SUBSCRIPTION_FIELDS = (
    "status", "delivery_days", "meals_per_week", "meals_per_day", "start_date",
    "pause_limit_days", "total_paused_days", "pause_periods",
    "pause_start_date", "pause_end_date",
    "meals_delivered", "meals_cancelled", "carry_forward_meals", "cancellation_count",
)


class SqlAlchemyGateway:
    """
    Gateway over the meal_* tables

    Does not commit: the calling use case owns the transaction, so a row
    locked by load_subscription(for_update=True) stays locked until it commits.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- subscriptions ---

    def _get_model(self, subscription_id: int, for_update: bool = False) -> MealSubscriptionModel:
        q = self.db.query(MealSubscriptionModel).filter(
            MealSubscriptionModel.id == subscription_id,
        )
        if for_update:
            q = q.with_for_update()
        model = q.first()
        if not model:
            raise SubscriptionNotFoundError(f"Subscription {subscription_id} not found")
        return model

    def load_subscription(self, subscription_id: int, for_update: bool = False) -> Subscription:
        """
        Load a subscription; for_update=True takes a row lock (SELECT ... FOR UPDATE)

        Raises:
            SubscriptionNotFoundError: if no such subscription
        """
        model = self._get_model(subscription_id, for_update=for_update)
        record = {f: getattr(model, f) for f in _SUBSCRIPTION_FIELDS}
        record["id"] = model.id
        return Subscription.from_record(record)

    def save_subscription(self, subscription: Subscription) -> None:
        record = subscription.to_record()
        if subscription.id is None:
            model = MealSubscriptionModel()
            self.db.add(model)
        else:
            model = self._get_model(subscription.id)
        for f in _SUBSCRIPTION_FIELDS:
            setattr(model, f, record[f])
        # Date columns take date objects, not the ISO strings of the persisted shape
        model.start_date = subscription.start_date
        model.pause_start_date = subscription.pause_start_date
        model.pause_end_date = subscription.pause_end_date
        self.db.flush()
        subscription.id = model.id

    def list_paused_subscription_ids(self) -> list[int]:
        rows = self.db.query(MealSubscriptionModel.id).filter(
            MealSubscriptionModel.status == STATUS_PAUSED,
        ).order_by(MealSubscriptionModel.id).all()
        return [r[0] for r in rows]

    # --- reference data ---

    def load_holidays(self, from_date: date) -> set[date]:
        """Active holidays on/after from_date"""
        rows = self.db.query(HolidayModel.date).filter(
            HolidayModel.is_active == True,  # noqa: E712
            HolidayModel.date >= from_date,
        ).all()
        return {r[0] for r in rows}

    def load_settings(self) -> SubscriptionSettings:
        row = self.db.query(SubscriptionSettingsModel).order_by(
            SubscriptionSettingsModel.id
        ).first()
        defaults = get_settings()
        if row is None:
            return SubscriptionSettings(
                cancellation_cutoff_hours=defaults.CANCELLATION_CUTOFF_HOURS,
                max_cancellations_per_month=defaults.MAX_CANCELLATIONS_PER_MONTH,
                carry_forward_limit=defaults.CARRY_FORWARD_LIMIT,
            )
        return SubscriptionSettings(
            cancellation_cutoff_hours=(
                row.cancellation_cutoff_hours
                if row.cancellation_cutoff_hours is not None
                else defaults.CANCELLATION_CUTOFF_HOURS
            ),
            max_cancellations_per_month=(
                row.max_cancellations_per_month
                if row.max_cancellations_per_month is not None
                else defaults.MAX_CANCELLATIONS_PER_MONTH
            ),
            carry_forward_limit=(
                row.carry_forward_limit
                if row.carry_forward_limit is not None
                else defaults.CARRY_FORWARD_LIMIT
            ),
        )

    # --- deliveries ---

    def load_delivery_records(
        self,
        subscription_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[DeliveryRecord]:
        q = self.db.query(MealDeliveryModel).filter(
            MealDeliveryModel.subscription_id == subscription_id,
        )
        if date_from is not None:
            q = q.filter(MealDeliveryModel.delivery_date >= date_from)
        if date_to is not None:
            q = q.filter(MealDeliveryModel.delivery_date <= date_to)
        return [
            DeliveryRecord(
                id=m.id,
                subscription_id=m.subscription_id,
                date=m.delivery_date,
                status=m.status,
                meals_count=m.meals_count,
                cancelled_at=m.cancelled_at,
                cancellation_reason=m.cancellation_reason,
            )
            for m in q.order_by(MealDeliveryModel.delivery_date).all()
        ]

    def save_delivery_record(self, record: DeliveryRecord) -> None:
        if record.id is None:
            model = MealDeliveryModel(subscription_id=record.subscription_id)
            self.db.add(model)
        else:
            model = self.db.query(MealDeliveryModel).filter(
                MealDeliveryModel.id == record.id,
            ).first()
            if not model:
                raise DeliveryNotFoundError(f"Delivery {record.id} not found")
        model.delivery_date = record.date
        model.status = record.status
        model.meals_count = record.meals_count
        model.cancelled_at = record.cancelled_at
        model.cancellation_reason = record.cancellation_reason
        self.db.flush()
        record.id = model.id
