"""
Calendar helpers for delivery scheduling.

Uses date only for day arithmetic; "now" is always passed in by the caller.

Weekday codes are a persisted-format contract (stored as literal strings in
meal_subscriptions.delivery_days):

    U=Sun  M=Mon  T=Tue  W=Wed  R=Thu  F=Fri  S=Sat

Indices follow the Sun=0..Sat=6 convention, not Python's Mon=0 weekday().
"""
import calendar
from datetime import date, datetime, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo


WEEKDAY_CODES = {"U": 0, "M": 1, "T": 2, "W": 3, "R": 4, "F": 5, "S": 6}
CODE_BY_INDEX = {index: code for code, index in WEEKDAY_CODES.items()}


class InvalidRangeError(ValueError):
    pass


class InvalidWeekdayCodeError(ValueError):
    pass


def weekday_index(d: date) -> int:
    """Sun=0..Sat=6"""
    return (d.weekday() + 1) % 7


def weekday_of(d: date) -> str:
    return CODE_BY_INDEX[weekday_index(d)]


def parse_delivery_days(codes: Iterable[str]) -> frozenset[int]:
    """
    Convert weekday codes (e.g. ["M", "W", "F"]) to a set of indices.

    Raises:
        InvalidWeekdayCodeError: on any code outside U,M,T,W,R,F,S
    """
    out = set()
    for code in codes:
        if code not in WEEKDAY_CODES:
            raise InvalidWeekdayCodeError(f"unknown weekday code: {code!r}")
        out.add(WEEKDAY_CODES[code])
    return frozenset(out)


def format_delivery_days(indices: Iterable[int]) -> list[str]:
    """Indices back to codes, in Sun..Sat order."""
    return [CODE_BY_INDEX[i] for i in sorted(set(indices))]


def is_past(d: date, now: datetime) -> bool:
    return d < now.date()


def is_holiday(d: date, holidays: Iterable[date]) -> bool:
    return d in holidays


def days_between_inclusive(a: date, b: date) -> int:
    """
    Length of [a, b] in whole days, both ends counted.

    Raises:
        InvalidRangeError: if b < a
    """
    if b < a:
        raise InvalidRangeError(f"range end {b} is before start {a}")
    return (b - a).days + 1


def month_bounds(d: date) -> tuple[date, date]:
    """First and last day of the calendar month containing d."""
    last = calendar.monthrange(d.year, d.month)[1]
    return d.replace(day=1), d.replace(day=last)


def expand_date_range(start: date, end: date) -> list[date]:
    """All dates in [start, end]; used for range-based meal cancellation."""
    length = days_between_inclusive(start, end)
    return [start + timedelta(days=i) for i in range(length)]


def local_now(tz_name: str) -> datetime:
    """Naive wall-clock time in the delivery timezone."""
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)
