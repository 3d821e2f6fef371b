"""
tests/test_day_boundary.py — Effective-Day Boundary Tests
==========================================================

The daily cap rolls over at 19:35 Eastern civil time, not UTC midnight.
Covers both sides of the boundary in summer and winter, the DST
transitions themselves, and the next-reset computation.
"""

from __future__ import annotations

from datetime import UTC, date, datetime

from ensign.engine.clock import ResetClock

from conftest import AFTER_RESET, AFTER_RESET_DAY


class TestEffectiveDay:
    def test_one_minute_before_reset_is_previous_day_in_summer(self):
        # 23:34 UTC == 19:34 EDT
        clock = ResetClock()
        assert clock.effective_day(datetime(2026, 7, 15, 23, 34, tzinfo=UTC)) == date(2026, 7, 14)

    def test_one_minute_after_reset_is_same_day_in_summer(self):
        clock = ResetClock()
        assert clock.effective_day(datetime(2026, 7, 15, 23, 36, tzinfo=UTC)) == date(2026, 7, 15)

    def test_exactly_at_reset_starts_new_day(self):
        clock = ResetClock()
        assert clock.effective_day(datetime(2026, 7, 15, 23, 35, tzinfo=UTC)) == date(2026, 7, 15)

    def test_winter_uses_standard_offset(self):
        # 00:34 UTC on Jan 15 == 19:34 EST on Jan 14
        clock = ResetClock()
        assert clock.effective_day(datetime(2026, 1, 15, 0, 34, tzinfo=UTC)) == date(2026, 1, 13)
        assert clock.effective_day(datetime(2026, 1, 15, 0, 36, tzinfo=UTC)) == date(2026, 1, 14)

    def test_naive_datetime_is_treated_as_utc(self):
        clock = ResetClock()
        assert clock.effective_day(datetime(2026, 7, 15, 23, 40)) == date(2026, 7, 15)

    def test_day_key_is_iso(self):
        assert ResetClock().effective_day_key(AFTER_RESET) == AFTER_RESET_DAY

    def test_day_key_before(self):
        assert ResetClock().day_key_before(30, AFTER_RESET) == "2026-06-15"

    def test_custom_reset_time(self):
        clock = ResetClock(reset_hour=0, reset_minute=0)
        # 03:59 UTC == 23:59 EDT the day before
        assert clock.effective_day(datetime(2026, 7, 16, 3, 59, tzinfo=UTC)) == date(2026, 7, 15)
        assert clock.effective_day(datetime(2026, 7, 16, 4, 0, tzinfo=UTC)) == date(2026, 7, 16)


class TestDaylightSaving:
    def test_daylight_starts_second_sunday_of_march(self):
        # 2026-03-08 02:00 EST == 07:00 UTC
        clock = ResetClock()
        assert not clock.is_daylight(datetime(2026, 3, 8, 6, 59, tzinfo=UTC))
        assert clock.is_daylight(datetime(2026, 3, 8, 7, 0, tzinfo=UTC))

    def test_daylight_ends_first_sunday_of_november(self):
        # 2026-11-01 02:00 EDT == 06:00 UTC
        clock = ResetClock()
        assert clock.is_daylight(datetime(2026, 11, 1, 5, 59, tzinfo=UTC))
        assert not clock.is_daylight(datetime(2026, 11, 1, 6, 0, tzinfo=UTC))

    def test_civil_time(self):
        clock = ResetClock()
        assert clock.to_civil(AFTER_RESET) == datetime(2026, 7, 15, 19, 40)
        assert clock.to_civil(datetime(2026, 1, 15, 0, 40, tzinfo=UTC)) == datetime(2026, 1, 14, 19, 40)


class TestNextReset:
    def test_after_reset_points_to_tomorrow(self):
        assert ResetClock().next_reset_at(AFTER_RESET) == datetime(2026, 7, 16, 23, 35, tzinfo=UTC)

    def test_before_reset_points_to_today(self):
        moment = datetime(2026, 7, 15, 20, 0, tzinfo=UTC)
        assert ResetClock().next_reset_at(moment) == datetime(2026, 7, 15, 23, 35, tzinfo=UTC)

    def test_across_spring_transition(self):
        # 19:40 EST on Mar 7; next reset is 19:35 EDT on Mar 8
        moment = datetime(2026, 3, 8, 0, 40, tzinfo=UTC)
        assert ResetClock().next_reset_at(moment) == datetime(2026, 3, 8, 23, 35, tzinfo=UTC)

    def test_seconds_until_next_reset(self):
        moment = datetime(2026, 7, 15, 23, 30, tzinfo=UTC)
        assert ResetClock().seconds_until_next_reset(moment) == 300.0
