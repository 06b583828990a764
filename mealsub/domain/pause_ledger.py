"""
Pause accounting for a single subscription.

Pause days are a lifetime quota (pause_limit_days), not reset monthly.
Periods are inclusive on both ends: pausing and resuming on the same day
consumes one day. At most one period is open (end_date=None) at a time.
"""
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta

from mealsub.domain.calendar import days_between_inclusive, is_past
from mealsub.domain.errors import (
    Result,
    ERR_INVALID_RANGE, ERR_ALREADY_PAUSED, ERR_NOT_PAUSED, ERR_LIMIT_EXCEEDED,
)


@dataclass(frozen=True)
class PausePeriod:
    start_date: date
    end_date: date | None = None  # None = still paused

    @property
    def is_open(self) -> bool:
        return self.end_date is None

    def length(self, today: date) -> int:
        """Inclusive day count; an open period counts up to today."""
        if self.end_date is not None:
            return days_between_inclusive(self.start_date, self.end_date)
        if today < self.start_date:
            return 0
        return days_between_inclusive(self.start_date, today)


class PauseLedger:
    """
    Operates on a subscription's pause_periods / total_paused_days / pause_limit_days.

    Every mutating call validates first and touches the subscription only on success.
    """

    def __init__(self, subscription):
        self.sub = subscription

    # --- derived values ---

    def _closed_days(self) -> int:
        return sum(
            days_between_inclusive(p.start_date, p.end_date)
            for p in self.sub.pause_periods if not p.is_open
        )

    def _last_countable_day(self, period: PausePeriod, today: date) -> date:
        """
        Last day an open period can use: today, bounded by the planned end
        (sub.pause_end_date) and by the days left in the quota.
        """
        end = today
        planned_end = self.sub.pause_end_date
        if planned_end is not None and planned_end < end:
            end = planned_end
        allowance = self.sub.pause_limit_days - self._closed_days()
        return min(end, period.start_date + timedelta(days=allowance - 1))

    def paused_days(self, now: datetime) -> int:
        total = self._closed_days()
        current = self.open_period()
        if current is not None:
            end = self._last_countable_day(current, now.date())
            if end >= current.start_date:
                total += days_between_inclusive(current.start_date, end)
        return total

    def recompute(self, now: datetime) -> int:
        self.sub.total_paused_days = self.paused_days(now)
        return self.sub.total_paused_days

    def can_pause(self, additional_days: int) -> bool:
        return self.sub.total_paused_days + additional_days <= self.sub.pause_limit_days

    def remaining_pause_days(self, now: datetime | None = None) -> int:
        used = self.paused_days(now) if now is not None else self.sub.total_paused_days
        return max(0, self.sub.pause_limit_days - used)

    def open_period(self) -> PausePeriod | None:
        for p in self.sub.pause_periods:
            if p.is_open:
                return p
        return None

    def covers(self, d: date, planned_end: date | None = None) -> bool:
        """Is d inside a pause? An open period runs to planned_end (or indefinitely)."""
        for p in self.sub.pause_periods:
            end = p.end_date if p.end_date is not None else planned_end
            if p.start_date <= d and (end is None or d <= end):
                return True
        return False

    def _overlaps_closed(self, start: date, end: date) -> bool:
        for p in self.sub.pause_periods:
            if p.is_open:
                continue
            # Overlap: NOT (existing.end < new.start OR new.end < existing.start)
            if not (p.end_date < start or end < p.start_date):
                return True
        return False

    # --- operations ---

    def open_pause(self, start_date: date, end_date: date, now: datetime) -> Result:
        """
        Start a pause planned for [start_date, end_date].

        The period is stored open; the planned end only sizes the quota check.
        """
        if end_date < start_date:
            return Result.failure(ERR_INVALID_RANGE, "Pause end date must not be before start date")
        if is_past(start_date, now):
            return Result.failure(ERR_INVALID_RANGE, "Pause cannot start in the past")
        if self.open_period() is not None:
            return Result.failure(ERR_ALREADY_PAUSED, "Subscription already has an ongoing pause")
        if self._overlaps_closed(start_date, end_date):
            return Result.failure(ERR_INVALID_RANGE, "Pause overlaps an earlier pause period")

        self.recompute(now)
        requested = days_between_inclusive(start_date, end_date)
        if not self.can_pause(requested):
            remaining = self.remaining_pause_days()
            return Result.failure(
                ERR_LIMIT_EXCEEDED,
                f"This pause would exceed your limit of {self.sub.pause_limit_days} days. "
                f"You have {remaining} days remaining.",
                remaining=remaining,
            )

        period = PausePeriod(start_date=start_date, end_date=None)
        self.sub.pause_periods = [*self.sub.pause_periods, period]
        self.recompute(now)
        return Result.success(period)

    def close_pause_now(self, now: datetime) -> Result:
        """
        Resume immediately.

        The open period ends today, or earlier if the planned end or the
        quota ran out first. A pause that has not begun is withdrawn.
        """
        current = self.open_period()
        if current is None:
            return Result.failure(ERR_NOT_PAUSED, "Subscription is not paused")

        end = self._last_countable_day(current, now.date())
        if end < current.start_date:
            return self.withdraw_pause(now)

        closed = replace(current, end_date=end)
        self._swap(current, closed)
        self.recompute(now)
        return Result.success(closed)

    def withdraw_pause(self, now: datetime) -> Result:
        """Drop the open period without consuming any days."""
        current = self.open_period()
        if current is None:
            return Result.failure(ERR_NOT_PAUSED, "Subscription is not paused")
        self.sub.pause_periods = [p for p in self.sub.pause_periods if p is not current]
        self.recompute(now)
        return Result.success(None)

    def close_pause_at(self, resume_date: date, now: datetime) -> Result:
        """End the open period on resume_date (inclusive)."""
        current = self.open_period()
        if current is None:
            return Result.failure(ERR_NOT_PAUSED, "Subscription is not paused")
        if resume_date < current.start_date:
            return Result.failure(
                ERR_INVALID_RANGE,
                f"Resume date {resume_date} is before the pause start {current.start_date}",
            )

        closed_total = self._closed_days()
        length = days_between_inclusive(current.start_date, resume_date)
        if closed_total + length > self.sub.pause_limit_days:
            remaining = max(0, self.sub.pause_limit_days - closed_total)
            return Result.failure(
                ERR_LIMIT_EXCEEDED,
                f"Resuming on {resume_date} would exceed your pause limit of "
                f"{self.sub.pause_limit_days} days. {remaining} days are left for this pause.",
                remaining=remaining,
            )

        closed = replace(current, end_date=resume_date)
        self._swap(current, closed)
        self.recompute(now)
        return Result.success(closed)

    def _swap(self, old: PausePeriod, new: PausePeriod) -> None:
        self.sub.pause_periods = [new if p is old else p for p in self.sub.pause_periods]
