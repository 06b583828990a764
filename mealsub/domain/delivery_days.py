"""
Delivery day resolution: which upcoming dates a subscription can receive meals.

A date is eligible when its weekday is one of the subscription's delivery days
and it is not an active holiday. The scan is bounded by a horizon; finding
nothing within it is a normal outcome, not an error.
"""
from datetime import date, datetime, timedelta
from typing import Iterable

from mealsub.domain.calendar import (
    WEEKDAY_CODES, weekday_index, is_past, is_holiday,
)
from mealsub.domain.errors import Result, ERR_INVALID_DELIVERY_DAYS

DEFAULT_HORIZON_DAYS = 14


def _as_indices(weekday_set: Iterable[int | str]) -> frozenset[int]:
    """Accept either weekday codes ("M") or Sun=0..Sat=6 indices."""
    out = set()
    for day in weekday_set:
        if isinstance(day, str):
            if day not in WEEKDAY_CODES:
                raise ValueError(f"unknown weekday code: {day!r}")
            out.add(WEEKDAY_CODES[day])
        else:
            out.add(day)
    return frozenset(out)


def next_eligible_dates(
    anchor: date,
    weekday_set: Iterable[int | str],
    holidays: Iterable[date],
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    limit: int = 1,
) -> list[date]:
    """
    Scan anchor+1 .. anchor+horizon_days for delivery dates.

    Args:
        anchor: Day to scan from (exclusive)
        weekday_set: Delivery days as codes or indices
        holidays: Dates with no delivery
        horizon_days: How far ahead to look
        limit: Stop after this many dates

    Returns:
        Up to `limit` dates, ascending. May be empty.
    """
    days = _as_indices(weekday_set)
    holiday_set = set(holidays)
    out: list[date] = []
    if limit < 1 or not days:
        return out
    for i in range(1, horizon_days + 1):
        d = anchor + timedelta(days=i)
        if weekday_index(d) in days and not is_holiday(d, holiday_set):
            out.append(d)
            if len(out) >= limit:
                break
    return out


def is_eligible(
    d: date,
    weekday_set: Iterable[int | str],
    holidays: Iterable[date],
    now: datetime,
) -> bool:
    """Check a manually chosen date (e.g. a resume date)."""
    if is_past(d, now):
        return False
    if is_holiday(d, set(holidays)):
        return False
    return weekday_index(d) in _as_indices(weekday_set)


def validate_delivery_days(codes: Iterable[str], meals_per_week: int) -> Result:
    """Delivery days must be known codes, unique, and match the plan's weekly count."""
    codes = list(codes)
    unknown = [c for c in codes if c not in WEEKDAY_CODES]
    if unknown:
        return Result.failure(
            ERR_INVALID_DELIVERY_DAYS,
            f"Unknown delivery day code(s): {', '.join(map(str, unknown))}",
        )
    if len(set(codes)) != len(codes):
        return Result.failure(ERR_INVALID_DELIVERY_DAYS, "Delivery days must not repeat")
    if len(codes) != meals_per_week:
        return Result.failure(
            ERR_INVALID_DELIVERY_DAYS,
            f"Select exactly {meals_per_week} delivery days (got {len(codes)})",
        )
    return Result.success()
