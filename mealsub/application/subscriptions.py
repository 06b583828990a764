"""
Meal subscription use cases: pause, resume, meal cancellation and status changes.

Each mutating use case:
  1. loads the subscription row under a lock (SELECT ... FOR UPDATE) and
     reactivates it if its planned pause is already over,
  2. runs the engine (SubscriptionStateMachine + ledgers) with an explicit `now`,
  3. commits on success, rolls back (releasing the lock) on a rejected Result.

Business-rule rejections come back as Result.failure; a missing subscription
raises SubscriptionNotFoundError.
"""
import logging
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from mealsub.config import get_settings
from mealsub.domain.calendar import expand_date_range, month_bounds
from mealsub.domain.cancellation_ledger import CancellationLedger, DeliveryRecord
from mealsub.domain.delivery_days import (
    next_eligible_dates, validate_delivery_days,
)
from mealsub.domain.errors import Result, ERR_INVALID_RANGE
from mealsub.domain.status import STATUS_ACTIVE, DELIVERY_SCHEDULED
from mealsub.domain.subscription import Subscription, SubscriptionStateMachine
from mealsub.infrastructure.gateway import SqlAlchemyGateway

logger = logging.getLogger(__name__)


class _LockedUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.gateway = SqlAlchemyGateway(db)
        self._settled = False

    def _finish(self, result: Result, action: str, sub_id: int | None) -> Result:
        if result.ok:
            self.db.commit()
            logger.info("%s applied to subscription_id=%s", action, sub_id)
        else:
            if self._settled:
                # Keep the expired pause closed on load; the rejected operation changed nothing
                self.db.commit()
            else:
                self.db.rollback()
            logger.info(
                "%s rejected for subscription_id=%s: %s",
                action, sub_id, result.error.kind,
            )
        return result

    def _load_machine(self, sub_id: int, now: datetime) -> SubscriptionStateMachine:
        """Lock the subscription and reactivate it if its planned pause is over"""
        sub = self.gateway.load_subscription(sub_id, for_update=True)
        machine = SubscriptionStateMachine(sub)
        if machine.settle_expired_pause(now):
            self.gateway.save_subscription(sub)
            self._settled = True
            logger.info("Expired pause closed for subscription_id=%s", sub_id)
        return machine


# ============================================================================
# Creation / schedule
# ============================================================================


class CreateMealSubscriptionUseCase(_LockedUseCase):
    def execute(
        self,
        delivery_days: list[str],
        meals_per_week: int,
        start_date: date,
        meals_per_day: int = 1,
        pause_limit_days: int | None = None,
    ) -> Result:
        """
        Create an active subscription after checkout

        Returns:
            Result with the new subscription id
        """
        check = validate_delivery_days(delivery_days, meals_per_week)
        if not check.ok:
            return check

        if pause_limit_days is None:
            pause_limit_days = get_settings().DEFAULT_PAUSE_LIMIT_DAYS

        sub = Subscription(
            id=None,
            status=STATUS_ACTIVE,
            delivery_days=list(delivery_days),
            meals_per_week=meals_per_week,
            meals_per_day=meals_per_day,
            start_date=start_date,
            pause_limit_days=pause_limit_days,
        )
        self.gateway.save_subscription(sub)
        return self._finish(Result.success(sub.id), "create", sub.id)


class ScheduleDeliveriesUseCase(_LockedUseCase):
    """Create scheduled delivery rows for upcoming eligible dates."""

    def execute(self, sub_id: int, now: datetime, days_ahead: int = 7) -> Result:
        machine = self._load_machine(sub_id, now)
        sub = machine.sub
        today = now.date()
        holidays = self.gateway.load_holidays(today)
        existing = {
            r.date for r in self.gateway.load_delivery_records(
                sub_id, date_from=today, date_to=today + timedelta(days=days_ahead),
            )
        }

        created: list[date] = []
        for i in range(1, days_ahead + 1):
            d = today + timedelta(days=i)
            if d in existing or not machine.can_schedule(d, holidays, now):
                continue
            self.gateway.save_delivery_record(DeliveryRecord(
                subscription_id=sub_id,
                date=d,
                status=DELIVERY_SCHEDULED,
                meals_count=sub.meals_per_day,
            ))
            created.append(d)
        return self._finish(Result.success(created), "schedule", sub_id)


# ============================================================================
# Pause / resume
# ============================================================================


class PauseSubscriptionUseCase(_LockedUseCase):
    def execute(self, sub_id: int, start_date: date, end_date: date, now: datetime) -> Result:
        machine = self._load_machine(sub_id, now)
        result = machine.pause(start_date, end_date, now)
        if result.ok:
            self.gateway.save_subscription(machine.sub)
        return self._finish(result, "pause", sub_id)


class ResumeSubscriptionUseCase(_LockedUseCase):
    def execute(self, sub_id: int, now: datetime, resume_date: date | None = None) -> Result:
        """
        Resume now, or from a chosen date

        A chosen date is the first delivery after the pause: it must be an
        upcoming delivery day that is not a holiday, and it is not paused.
        """
        machine = self._load_machine(sub_id, now)

        if resume_date is None:
            result = machine.resume_now(now)
        else:
            holidays = self.gateway.load_holidays(now.date())
            result = machine.resume_from(resume_date, holidays, now)

        if result.ok:
            self.gateway.save_subscription(machine.sub)
        return self._finish(result, "resume", sub_id)


# ============================================================================
# Cancellation
# ============================================================================


class CancelMealsUseCase(_LockedUseCase):
    def execute(
        self,
        sub_id: int,
        now: datetime,
        dates: list[date] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        reason: str | None = None,
    ) -> Result:
        """
        Cancel deliveries on explicit dates or on every date of [date_from, date_to]

        Returns:
            Result with CancellationOutcome
        """
        if dates is None:
            if date_from is None:
                return Result.failure(ERR_INVALID_RANGE, "Select dates to cancel")
            end = date_to or date_from
            if end < date_from:
                return Result.failure(ERR_INVALID_RANGE, "Range end must not be before its start")
            dates = expand_date_range(date_from, end)

        machine = self._load_machine(sub_id, now)
        sub = machine.sub
        deliveries = self.gateway.load_delivery_records(sub_id)
        settings = self.gateway.load_settings()

        result = machine.cancel_meals(
            dates, now, settings, deliveries, reason=reason or "User cancelled",
        )
        if result.ok and result.value.cancelled_count:
            changed = set(result.value.dates)
            for record in deliveries:
                if record.date in changed:
                    self.gateway.save_delivery_record(record)
            self.gateway.save_subscription(sub)
        return self._finish(result, "cancel_meals", sub_id)


class CancelSubscriptionUseCase(_LockedUseCase):
    def execute(self, sub_id: int, now: datetime) -> Result:
        machine = self._load_machine(sub_id, now)
        result = machine.cancel_subscription(now)
        if result.ok:
            self.gateway.save_subscription(machine.sub)
        return self._finish(result, "cancel", sub_id)


class ChangeDeliveryDaysUseCase(_LockedUseCase):
    def execute(self, sub_id: int, delivery_days: list[str]) -> Result:
        sub = self.gateway.load_subscription(sub_id, for_update=True)
        result = SubscriptionStateMachine(sub).change_delivery_days(delivery_days)
        if result.ok:
            self.gateway.save_subscription(sub)
        return self._finish(result, "change_delivery_days", sub_id)


# ============================================================================
# Read side
# ============================================================================


def upcoming_delivery_dates(
    db: Session,
    sub_id: int,
    now: datetime,
    limit: int = 1,
    horizon_days: int | None = None,
) -> list[date]:
    """Next delivery dates after today (suggested resume dates while paused)."""
    if horizon_days is None:
        horizon_days = get_settings().RESUME_HORIZON_DAYS
    gateway = SqlAlchemyGateway(db)
    sub = gateway.load_subscription(sub_id)
    holidays = gateway.load_holidays(now.date())
    return next_eligible_dates(
        now.date(), sub.delivery_days, holidays,
        horizon_days=horizon_days, limit=limit,
    )


def compute_subscription_overview(db: Session, sub_id: int, now: datetime) -> dict:
    """
    Everything the subscription page shows: status, counters, pause and
    cancellation allowances, next delivery.
    """
    gateway = SqlAlchemyGateway(db)
    sub = gateway.load_subscription(sub_id)
    machine = SubscriptionStateMachine(sub)
    # Not persisted here; the next locked use case (or the job) stores it
    machine.settle_expired_pause(now)
    settings = gateway.load_settings()

    first, last = month_bounds(now.date())
    # Cancellations are counted by cancelled_at, which may fall outside the delivery month
    deliveries = gateway.load_delivery_records(sub_id)
    ledger = CancellationLedger(sub, deliveries)

    paused_days = machine.pauses.paused_days(now)
    upcoming = upcoming_delivery_dates(db, sub_id, now)

    return {
        "id": sub.id,
        "status": sub.status,
        "delivery_days": sub.delivery_days,
        "meals_per_week": sub.meals_per_week,
        "meals_per_day": sub.meals_per_day,
        "start_date": sub.start_date,
        "pause_limit_days": sub.pause_limit_days,
        "total_paused_days": paused_days,
        "remaining_pause_days": machine.pauses.remaining_pause_days(now),
        "can_pause": paused_days < sub.pause_limit_days,
        "pause_start_date": sub.pause_start_date,
        "pause_end_date": sub.pause_end_date,
        "meals_delivered": sub.meals_delivered,
        "meals_cancelled": sub.meals_cancelled,
        "carry_forward_meals": sub.carry_forward_meals,
        "cancellation_count": sub.cancellation_count,
        "month_start": first,
        "month_end": last,
        "monthly_cancellations": ledger.monthly_cancellation_count(now),
        "max_cancellations_per_month": settings.max_cancellations_per_month,
        "remaining_cancellations": ledger.remaining_cancellations(now, settings),
        "cancellation_cutoff_hours": settings.cancellation_cutoff_hours,
        "next_delivery_date": upcoming[0] if upcoming else None,
    }
