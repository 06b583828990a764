"""
Tests for pause accounting: inclusive lengths, lifetime quota, open/close
"""
from datetime import date, datetime

from mealsub.domain.errors import (
    ERR_INVALID_RANGE, ERR_ALREADY_PAUSED, ERR_NOT_PAUSED, ERR_LIMIT_EXCEEDED,
)
from mealsub.domain.pause_ledger import PauseLedger, PausePeriod
from mealsub.domain.status import STATUS_ACTIVE
from mealsub.domain.subscription import Subscription

NOW = datetime(2026, 3, 2, 10, 0)  # Monday


def _sub(**overrides) -> Subscription:
    fields = dict(
        id=1,
        status=STATUS_ACTIVE,
        delivery_days=["M", "W", "F"],
        meals_per_week=3,
        start_date=date(2026, 1, 5),
    )
    fields.update(overrides)
    return Subscription(**fields)


def _expected_total(sub: Subscription, now: datetime) -> int:
    return sum(p.length(now.date()) for p in sub.pause_periods)


class TestPausePeriod:
    def test_closed_length_is_inclusive(self):
        assert PausePeriod(date(2026, 3, 2), date(2026, 3, 2)).length(date(2026, 4, 1)) == 1
        assert PausePeriod(date(2026, 3, 2), date(2026, 3, 6)).length(date(2026, 4, 1)) == 5

    def test_open_length_counts_to_today(self):
        p = PausePeriod(date(2026, 3, 2))
        assert p.is_open
        assert p.length(date(2026, 3, 4)) == 3

    def test_open_period_not_started(self):
        assert PausePeriod(date(2026, 3, 10)).length(date(2026, 3, 4)) == 0


class TestOpenPause:
    def test_opens_period_without_end(self):
        sub = _sub()
        result = PauseLedger(sub).open_pause(date(2026, 3, 3), date(2026, 3, 9), NOW)

        assert result.ok
        assert sub.pause_periods == [PausePeriod(date(2026, 3, 3), None)]
        # Not started yet, nothing used
        assert sub.total_paused_days == 0

    def test_reversed_range(self):
        sub = _sub()
        result = PauseLedger(sub).open_pause(date(2026, 3, 9), date(2026, 3, 3), NOW)

        assert result.error.kind == ERR_INVALID_RANGE
        assert sub.pause_periods == []

    def test_start_in_past(self):
        sub = _sub()
        result = PauseLedger(sub).open_pause(date(2026, 3, 1), date(2026, 3, 5), NOW)
        assert result.error.kind == ERR_INVALID_RANGE

    def test_start_today_allowed(self):
        sub = _sub()
        assert PauseLedger(sub).open_pause(date(2026, 3, 2), date(2026, 3, 2), NOW).ok
        assert sub.total_paused_days == 1

    def test_second_open_pause(self):
        sub = _sub()
        ledger = PauseLedger(sub)
        ledger.open_pause(date(2026, 3, 3), date(2026, 3, 5), NOW)

        result = ledger.open_pause(date(2026, 3, 10), date(2026, 3, 12), NOW)
        assert result.error.kind == ERR_ALREADY_PAUSED
        assert len(sub.pause_periods) == 1

    def test_overlap_with_closed_period(self):
        sub = _sub(
            pause_periods=[PausePeriod(date(2026, 3, 2), date(2026, 3, 4))],
            total_paused_days=3,
        )
        result = PauseLedger(sub).open_pause(date(2026, 3, 4), date(2026, 3, 6), NOW)
        assert result.error.kind == ERR_INVALID_RANGE

    def test_limit_exceeded_leaves_state_unchanged(self):
        # 25 of 30 days used; a 10-day pause does not fit
        earlier = PausePeriod(date(2026, 1, 5), date(2026, 1, 29))
        sub = _sub(pause_periods=[earlier], total_paused_days=25)

        result = PauseLedger(sub).open_pause(date(2026, 3, 3), date(2026, 3, 12), NOW)

        assert result.error.kind == ERR_LIMIT_EXCEEDED
        assert result.error.remaining == 5
        assert "limit of 30 days" in result.error.message
        assert "5 days remaining" in result.error.message
        assert sub.pause_periods == [earlier]
        assert sub.total_paused_days == 25

    def test_exactly_remaining_days_fits(self):
        earlier = PausePeriod(date(2026, 1, 5), date(2026, 1, 29))
        sub = _sub(pause_periods=[earlier], total_paused_days=25)

        assert PauseLedger(sub).open_pause(date(2026, 3, 3), date(2026, 3, 7), NOW).ok

    def test_can_pause_boundary(self):
        sub = _sub(total_paused_days=25)
        ledger = PauseLedger(sub)
        assert ledger.can_pause(5)
        assert not ledger.can_pause(6)


class TestClosePause:
    def test_same_day_pause_and_resume_counts_one_day(self):
        sub = _sub()
        ledger = PauseLedger(sub)
        ledger.open_pause(date(2026, 3, 2), date(2026, 3, 6), NOW)

        result = ledger.close_pause_now(NOW)

        assert result.ok
        assert sub.pause_periods == [PausePeriod(date(2026, 3, 2), date(2026, 3, 2))]
        assert sub.total_paused_days == 1

    def test_close_midway(self):
        sub = _sub()
        ledger = PauseLedger(sub)
        ledger.open_pause(date(2026, 3, 3), date(2026, 3, 12), NOW)

        ledger.close_pause_now(datetime(2026, 3, 6, 8, 0))

        assert sub.pause_periods[0].end_date == date(2026, 3, 6)
        assert sub.total_paused_days == 4

    def test_close_before_start_withdraws_pause(self):
        sub = _sub()
        ledger = PauseLedger(sub)
        ledger.open_pause(date(2026, 3, 5), date(2026, 3, 12), NOW)

        result = ledger.close_pause_now(NOW)

        assert result.ok
        assert sub.pause_periods == []
        assert sub.total_paused_days == 0

    def test_close_when_not_paused(self):
        result = PauseLedger(_sub()).close_pause_now(NOW)
        assert result.error.kind == ERR_NOT_PAUSED

    def test_close_at_date(self):
        sub = _sub()
        ledger = PauseLedger(sub)
        ledger.open_pause(date(2026, 3, 3), date(2026, 3, 9), NOW)

        result = ledger.close_pause_at(date(2026, 3, 10), NOW)

        assert result.ok
        assert result.value == PausePeriod(date(2026, 3, 3), date(2026, 3, 10))
        assert sub.total_paused_days == 8

    def test_close_at_before_start(self):
        sub = _sub()
        ledger = PauseLedger(sub)
        ledger.open_pause(date(2026, 3, 3), date(2026, 3, 9), NOW)

        result = ledger.close_pause_at(date(2026, 3, 2), NOW)
        assert result.error.kind == ERR_INVALID_RANGE
        assert sub.pause_periods[0].is_open

    def test_close_at_beyond_limit(self):
        sub = _sub(pause_limit_days=10)
        ledger = PauseLedger(sub)
        ledger.open_pause(date(2026, 3, 3), date(2026, 3, 7), NOW)

        result = ledger.close_pause_at(date(2026, 3, 20), NOW)

        assert result.error.kind == ERR_LIMIT_EXCEEDED
        assert result.error.remaining == 10
        assert sub.pause_periods[0].is_open

    def test_close_late_stops_at_quota(self):
        sub = _sub(pause_limit_days=5)
        ledger = PauseLedger(sub)
        ledger.open_pause(date(2026, 3, 2), date(2026, 3, 4), NOW)

        assert ledger.close_pause_now(datetime(2026, 3, 30, 9, 0)).ok
        assert sub.pause_periods == [PausePeriod(date(2026, 3, 2), date(2026, 3, 6))]
        assert sub.total_paused_days == 5

    def test_close_late_stops_at_planned_end(self):
        sub = _sub(pause_end_date=date(2026, 3, 4))
        ledger = PauseLedger(sub)
        ledger.open_pause(date(2026, 3, 2), date(2026, 3, 4), NOW)

        assert ledger.paused_days(datetime(2026, 3, 20, 9, 0)) == 3
        ledger.close_pause_now(datetime(2026, 3, 20, 9, 0))
        assert sub.pause_periods == [PausePeriod(date(2026, 3, 2), date(2026, 3, 4))]

    def test_withdraw(self):
        sub = _sub()
        ledger = PauseLedger(sub)
        ledger.open_pause(date(2026, 3, 4), date(2026, 3, 6), NOW)

        assert ledger.withdraw_pause(NOW).ok
        assert sub.pause_periods == []
        assert ledger.withdraw_pause(NOW).error.kind == ERR_NOT_PAUSED

    def test_reopen_after_same_day_close(self):
        sub = _sub()
        ledger = PauseLedger(sub)
        ledger.open_pause(date(2026, 3, 2), date(2026, 3, 2), NOW)
        ledger.close_pause_now(NOW)

        assert ledger.open_pause(date(2026, 3, 3), date(2026, 3, 4), NOW).ok
        assert len(sub.pause_periods) == 2


class TestPauseTotals:
    def test_total_matches_period_sum_after_each_step(self):
        sub = _sub()
        ledger = PauseLedger(sub)

        steps = [
            (NOW, lambda now: ledger.open_pause(date(2026, 3, 2), date(2026, 3, 6), now)),
            (datetime(2026, 3, 4, 9), lambda now: ledger.close_pause_now(now)),
            (datetime(2026, 3, 5, 9), lambda now: ledger.open_pause(date(2026, 3, 5), date(2026, 3, 8), now)),
        ]
        for now, op in steps:
            assert op(now).ok
            assert sub.total_paused_days == _expected_total(sub, now)
            assert sub.total_paused_days <= sub.pause_limit_days

        # Closed 3 days + open period 5..7 = 6
        assert ledger.paused_days(datetime(2026, 3, 7, 9)) == 6

    def test_remaining_never_negative(self):
        sub = _sub(
            pause_limit_days=5,
            pause_periods=[PausePeriod(date(2026, 1, 1), date(2026, 1, 8))],
            total_paused_days=8,
        )
        assert PauseLedger(sub).remaining_pause_days() == 0
        assert PauseLedger(sub).remaining_pause_days(NOW) == 0

    def test_covers(self):
        sub = _sub(pause_periods=[
            PausePeriod(date(2026, 2, 2), date(2026, 2, 4)),
            PausePeriod(date(2026, 3, 3)),
        ])
        ledger = PauseLedger(sub)

        assert ledger.covers(date(2026, 2, 4))
        assert not ledger.covers(date(2026, 2, 5))
        assert ledger.covers(date(2026, 3, 20))
        assert not ledger.covers(date(2026, 3, 20), planned_end=date(2026, 3, 9))
        assert ledger.covers(date(2026, 3, 9), planned_end=date(2026, 3, 9))
