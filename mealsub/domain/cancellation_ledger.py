"""
Per-delivery meal cancellation for a single subscription.

Rules:
  - At most max_cancellations_per_month cancelled deliveries per calendar month
    (counted by cancelled_at, falling back to the delivery date)
  - A delivery can be cancelled only while its date, at midnight, is more than
    cancellation_cutoff_hours away from now
  - The whole batch is validated before any record changes
  - Records that are no longer scheduled are skipped, so repeating a call is harmless
  - Cancelled meals accrue carry-forward credit, capped by carry_forward_limit
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable

from mealsub.domain.calendar import month_bounds
from mealsub.domain.errors import (
    Result, ERR_MONTHLY_LIMIT_EXCEEDED, ERR_WITHIN_CUTOFF, ERR_NOT_ACTIVE,
)
from mealsub.domain.status import STATUS_ACTIVE, DELIVERY_SCHEDULED, DELIVERY_CANCELLED


@dataclass(frozen=True)
class SubscriptionSettings:
    cancellation_cutoff_hours: int
    max_cancellations_per_month: int
    carry_forward_limit: int | None = None  # None = no cap


@dataclass
class DeliveryRecord:
    subscription_id: int
    date: date
    status: str = DELIVERY_SCHEDULED
    meals_count: int = 1
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    id: int | None = None


@dataclass
class CancellationOutcome:
    cancelled_count: int = 0
    meals_cancelled: int = 0
    carry_forward_added: int = 0
    carry_forward_forfeited: int = 0
    dates: list[date] = field(default_factory=list)


def cutoff_moment(delivery_date: date, cutoff_hours: int, now: datetime) -> datetime:
    """Last moment a delivery can still be cancelled (exclusive)."""
    midnight = datetime.combine(delivery_date, time.min, tzinfo=now.tzinfo)
    return midnight - timedelta(hours=cutoff_hours)


class CancellationLedger:
    def __init__(self, subscription, deliveries: Iterable[DeliveryRecord]):
        self.sub = subscription
        self.deliveries = list(deliveries)

    def _cancel_month_key(self, record: DeliveryRecord) -> date:
        if record.cancelled_at is not None:
            return record.cancelled_at.date()
        return record.date

    def monthly_cancellation_count(self, now: datetime) -> int:
        first, last = month_bounds(now.date())
        return sum(
            1 for r in self.deliveries
            if r.status == DELIVERY_CANCELLED and first <= self._cancel_month_key(r) <= last
        )

    def remaining_cancellations(self, now: datetime, settings: SubscriptionSettings) -> int:
        return max(0, settings.max_cancellations_per_month - self.monthly_cancellation_count(now))

    def can_cancel(self, dates: list[date], now: datetime, settings: SubscriptionSettings) -> Result:
        used = self.monthly_cancellation_count(now)
        if used + len(dates) > settings.max_cancellations_per_month:
            remaining = max(0, settings.max_cancellations_per_month - used)
            return Result.failure(
                ERR_MONTHLY_LIMIT_EXCEEDED,
                f"Cancellation limit exceeded. You can cancel {remaining} more meals this month.",
                remaining=remaining,
            )

        cutoff_hours = settings.cancellation_cutoff_hours
        for d in dates:
            if cutoff_moment(d, cutoff_hours, now) <= now:
                return Result.failure(
                    ERR_WITHIN_CUTOFF,
                    f"Cannot cancel meals within {cutoff_hours} hours of delivery. "
                    f"{d.isoformat()} is too close.",
                )
        return Result.success()

    def cancel(
        self,
        dates: Iterable[date],
        now: datetime,
        settings: SubscriptionSettings,
        reason: str | None = None,
    ) -> Result:
        """
        Cancel the scheduled deliveries on the given dates.

        Returns:
            Result with CancellationOutcome; cancelled_count may be lower than
            the number of dates when some were already cancelled, delivered,
            or never scheduled.
        """
        if self.sub.status != STATUS_ACTIVE:
            return Result.failure(
                ERR_NOT_ACTIVE,
                f"Meals can only be cancelled on an active subscription (status: {self.sub.status})",
            )

        by_date = {r.date: r for r in self.deliveries}
        pending: list[DeliveryRecord] = []
        seen: set[date] = set()
        for d in dates:
            if d in seen:
                continue
            seen.add(d)
            record = by_date.get(d)
            if record is not None and record.status == DELIVERY_SCHEDULED:
                pending.append(record)

        outcome = CancellationOutcome()
        if not pending:
            return Result.success(outcome)

        check = self.can_cancel([r.date for r in pending], now, settings)
        if not check.ok:
            return check

        for record in pending:
            record.status = DELIVERY_CANCELLED
            record.cancelled_at = now
            record.cancellation_reason = reason
            outcome.meals_cancelled += record.meals_count
            outcome.dates.append(record.date)
        outcome.cancelled_count = len(pending)

        if settings.carry_forward_limit is None:
            outcome.carry_forward_added = outcome.meals_cancelled
        else:
            room = max(0, settings.carry_forward_limit - self.sub.carry_forward_meals)
            outcome.carry_forward_added = min(outcome.meals_cancelled, room)
        outcome.carry_forward_forfeited = outcome.meals_cancelled - outcome.carry_forward_added

        self.sub.meals_cancelled += outcome.meals_cancelled
        self.sub.carry_forward_meals += outcome.carry_forward_added
        self.sub.cancellation_count += outcome.cancelled_count
        return Result.success(outcome)
