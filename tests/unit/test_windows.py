"""Tests for fixed-window arithmetic."""

from datetime import datetime, timedelta, timezone

from usage_governor.usage.windows import (
    DAILY_WINDOW,
    HOURLY_WINDOW,
    next_period,
    period_expired,
    roll_window,
    seconds_until,
)

NOW = datetime(2025, 1, 31, 10, 0, tzinfo=timezone.utc)


class TestRollWindow:
    def test_before_reset_keeps_count(self):
        state = roll_window(7, NOW + timedelta(minutes=5), NOW, HOURLY_WINDOW)
        assert state.count == 7
        assert state.reset_at == NOW + timedelta(minutes=5)
        assert state.rolled is False

    def test_at_reset_boundary_rolls(self):
        state = roll_window(7, NOW, NOW, HOURLY_WINDOW)
        assert state.count == 0
        assert state.reset_at == NOW + HOURLY_WINDOW
        assert state.rolled is True

    def test_new_window_starts_at_now_not_old_boundary(self):
        state = roll_window(3, NOW - timedelta(hours=5), NOW, DAILY_WINDOW)
        assert state.reset_at == NOW + timedelta(hours=24)


class TestMonthlyPeriod:
    def test_next_period_is_one_calendar_month(self):
        start, end = next_period(datetime(2025, 3, 10, tzinfo=timezone.utc))
        assert start == datetime(2025, 3, 10, tzinfo=timezone.utc)
        assert end == datetime(2025, 4, 10, tzinfo=timezone.utc)

    def test_month_end_clamps(self):
        _, end = next_period(NOW)
        assert end == datetime(2025, 2, 28, 10, 0, tzinfo=timezone.utc)

    def test_start_before_end(self):
        start, end = next_period(NOW)
        assert start < end

    def test_period_expired_is_inclusive(self):
        assert period_expired(NOW, NOW) is True
        assert period_expired(NOW + timedelta(seconds=1), NOW) is False


class TestSecondsUntil:
    def test_rounds_up(self):
        assert seconds_until(NOW + timedelta(seconds=1.2), NOW) == 2

    def test_never_below_one(self):
        assert seconds_until(NOW, NOW) == 1
        assert seconds_until(NOW - timedelta(seconds=10), NOW) == 1

    def test_full_hour(self):
        assert seconds_until(NOW + HOURLY_WINDOW, NOW) == 3600
