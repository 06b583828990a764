"""
Meal subscription aggregate and its status state machine.

Statuses:
    active ⇄ paused → cancelled (terminal)
    active → cancelled

The state machine decides which ledger operations are legal in each status
and applies the status change only after the ledger accepted the operation.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable

from mealsub.domain.cancellation_ledger import (
    CancellationLedger, DeliveryRecord, SubscriptionSettings,
)
from mealsub.domain.delivery_days import is_eligible, validate_delivery_days
from mealsub.domain.errors import (
    Result, ERR_ALREADY_PAUSED, ERR_NOT_PAUSED, ERR_ALREADY_CANCELLED, ERR_INVALID_RANGE,
)
from mealsub.domain.pause_ledger import PauseLedger, PausePeriod
from mealsub.domain.status import (
    STATUS_ACTIVE, STATUS_PAUSED, STATUS_CANCELLED, SUBSCRIPTION_STATUSES,
)

DEFAULT_PAUSE_LIMIT_DAYS = 30


@dataclass
class Subscription:
    id: int | None
    status: str
    delivery_days: list[str]  # weekday codes U,M,T,W,R,F,S
    meals_per_week: int
    start_date: date
    meals_per_day: int = 1
    pause_limit_days: int = DEFAULT_PAUSE_LIMIT_DAYS
    total_paused_days: int = 0
    pause_periods: list[PausePeriod] = field(default_factory=list)
    # Planned window of the current pause; the open period never counts past its end
    pause_start_date: date | None = None
    pause_end_date: date | None = None
    meals_delivered: int = 0
    meals_cancelled: int = 0
    carry_forward_meals: int = 0
    cancellation_count: int = 0

    def to_record(self) -> Dict[str, Any]:
        """Persisted shape: snake_case keys, ISO dates, weekday codes as strings."""
        return {
            "id": self.id,
            "status": self.status,
            "delivery_days": list(self.delivery_days),
            "meals_per_week": self.meals_per_week,
            "meals_per_day": self.meals_per_day,
            "start_date": self.start_date.isoformat(),
            "pause_limit_days": self.pause_limit_days,
            "total_paused_days": self.total_paused_days,
            "pause_periods": periods_to_json(self.pause_periods),
            "pause_start_date": _iso(self.pause_start_date),
            "pause_end_date": _iso(self.pause_end_date),
            "meals_delivered": self.meals_delivered,
            "meals_cancelled": self.meals_cancelled,
            "carry_forward_meals": self.carry_forward_meals,
            "cancellation_count": self.cancellation_count,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Subscription":
        """
        Build from the persisted shape.

        Missing counters read as 0 and a missing pause limit as 30 days.

        Raises:
            ValueError: unknown status or unparsable date
        """
        status = record["status"]
        if status not in SUBSCRIPTION_STATUSES:
            raise ValueError(f"unknown subscription status: {status!r}")

        return cls(
            id=record.get("id"),
            status=status,
            delivery_days=list(record.get("delivery_days") or []),
            meals_per_week=record["meals_per_week"],
            meals_per_day=record.get("meals_per_day") or 1,
            start_date=_to_date(record["start_date"]),
            pause_limit_days=(
                record["pause_limit_days"]
                if record.get("pause_limit_days") is not None
                else DEFAULT_PAUSE_LIMIT_DAYS
            ),
            total_paused_days=record.get("total_paused_days") or 0,
            pause_periods=periods_from_json(record.get("pause_periods")),
            pause_start_date=_to_date(record.get("pause_start_date")),
            pause_end_date=_to_date(record.get("pause_end_date")),
            meals_delivered=record.get("meals_delivered") or 0,
            meals_cancelled=record.get("meals_cancelled") or 0,
            carry_forward_meals=record.get("carry_forward_meals") or 0,
            cancellation_count=record.get("cancellation_count") or 0,
        )


# --- persisted-shape helpers ---

def _iso(d: date | None) -> str | None:
    return d.isoformat() if d is not None else None


def _to_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def periods_to_json(periods: Iterable[PausePeriod]) -> list[dict]:
    return [
        {"start_date": p.start_date.isoformat(), "end_date": _iso(p.end_date)}
        for p in periods
    ]


def periods_from_json(raw: Any) -> list[PausePeriod]:
    """Parse [{"start_date": "YYYY-MM-DD", "end_date": "YYYY-MM-DD" | null}, ...]"""
    if not raw:
        return []
    if not isinstance(raw, list):
        raise ValueError("pause_periods must be a JSON array")
    out = []
    for item in raw:
        out.append(PausePeriod(
            start_date=_to_date(item["start_date"]),
            end_date=_to_date(item.get("end_date")),
        ))
    return out


# ============================================================================
# State machine
# ============================================================================


class SubscriptionStateMachine:
    def __init__(self, subscription: Subscription):
        self.sub = subscription
        self.pauses = PauseLedger(subscription)

    def _reject_cancelled(self) -> Result | None:
        if self.sub.status == STATUS_CANCELLED:
            return Result.failure(ERR_ALREADY_CANCELLED, "Subscription is cancelled")
        return None

    def _clear_pause_window(self) -> None:
        self.sub.pause_start_date = None
        self.sub.pause_end_date = None

    def pause(self, start_date: date, end_date: date, now: datetime) -> Result:
        """active → paused"""
        rejected = self._reject_cancelled()
        if rejected:
            return rejected
        if self.sub.status == STATUS_PAUSED:
            return Result.failure(ERR_ALREADY_PAUSED, "Subscription is already paused")

        result = self.pauses.open_pause(start_date, end_date, now)
        if result.ok:
            self.sub.status = STATUS_PAUSED
            self.sub.pause_start_date = start_date
            self.sub.pause_end_date = end_date
        return result

    def _check_paused(self) -> Result | None:
        rejected = self._reject_cancelled()
        if rejected:
            return rejected
        if self.sub.status != STATUS_PAUSED:
            return Result.failure(ERR_NOT_PAUSED, "Subscription is not paused")
        return None

    def resume_now(self, now: datetime) -> Result:
        """paused → active, pause ends today (or on its planned end, if already past)"""
        rejected = self._check_paused()
        if rejected:
            return rejected
        result = self.pauses.close_pause_now(now)
        if result.ok:
            self.sub.status = STATUS_ACTIVE
            self._clear_pause_window()
        return result

    def resume_at(self, resume_date: date, now: datetime) -> Result:
        """paused → active, pause ends on resume_date"""
        rejected = self._check_paused()
        if rejected:
            return rejected
        result = self.pauses.close_pause_at(resume_date, now)
        if result.ok:
            self.sub.status = STATUS_ACTIVE
            self._clear_pause_window()
        return result

    def resume_from(self, first_delivery_date: date, holidays: Iterable[date], now: datetime) -> Result:
        """
        paused → active, deliveries restart on first_delivery_date

        The pause ends the day before. If that is before the pause began,
        the pause is withdrawn and uses no days.
        """
        rejected = self._check_paused()
        if rejected:
            return rejected
        if not is_eligible(first_delivery_date, self.sub.delivery_days, holidays, now):
            return Result.failure(
                ERR_INVALID_RANGE,
                f"{first_delivery_date.isoformat()} is not an available delivery day",
            )

        current = self.pauses.open_period()
        last_paused = first_delivery_date - timedelta(days=1)
        if current is not None and last_paused < current.start_date:
            result = self.pauses.withdraw_pause(now)
        else:
            result = self.pauses.close_pause_at(last_paused, now)
        if result.ok:
            self.sub.status = STATUS_ACTIVE
            self._clear_pause_window()
        return result

    def settle_expired_pause(self, now: datetime) -> bool:
        """
        Reactivate a paused subscription whose planned end has passed.

        The period is closed on the planned end (or earlier, if the quota
        ran out). Returns True when the status changed.
        """
        planned_end = self.sub.pause_end_date
        if self.sub.status != STATUS_PAUSED or planned_end is None or planned_end >= now.date():
            return False
        if not self.pauses.close_pause_now(now).ok:
            return False
        self.sub.status = STATUS_ACTIVE
        self._clear_pause_window()
        return True

    def cancel_subscription(self, now: datetime) -> Result:
        """active | paused → cancelled. Any ongoing pause is closed first."""
        rejected = self._reject_cancelled()
        if rejected:
            return rejected
        if self.pauses.open_period() is not None:
            self.pauses.close_pause_now(now)
            self._clear_pause_window()
        self.sub.status = STATUS_CANCELLED
        return Result.success()

    def cancel_meals(
        self,
        dates: Iterable[date],
        now: datetime,
        settings: SubscriptionSettings,
        deliveries: Iterable[DeliveryRecord],
        reason: str | None = None,
    ) -> Result:
        """Legal only while active; otherwise NOT_ACTIVE with nothing changed."""
        ledger = CancellationLedger(self.sub, deliveries)
        return ledger.cancel(dates, now, settings, reason=reason)

    def change_delivery_days(self, codes: Iterable[str]) -> Result:
        rejected = self._reject_cancelled()
        if rejected:
            return rejected
        codes = list(codes)
        check = validate_delivery_days(codes, self.sub.meals_per_week)
        if not check.ok:
            return check
        self.sub.delivery_days = codes
        return Result.success()

    def can_schedule(self, d: date, holidays: Iterable[date], now: datetime) -> bool:
        """May a delivery record be created for d?"""
        if self.sub.status == STATUS_CANCELLED:
            return False
        if d < self.sub.start_date:
            return False
        if not is_eligible(d, self.sub.delivery_days, holidays, now):
            return False
        return not self.pauses.covers(d, planned_end=self.sub.pause_end_date)
