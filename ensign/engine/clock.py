"""
ensign.engine.clock — Effective-Day Boundary
=============================================

The daily cap does not roll over at UTC midnight.  It rolls over at a
configured civil time of day (default 19:35) in a fixed civil zone that
observes North-American daylight saving time:

* daylight offset from the second Sunday of March, 02:00 local standard time,
* standard offset again from the first Sunday of November, 02:00 local
  daylight time.

If the civil clock reads earlier than the reset time, the effective day
is the previous calendar date; otherwise it is today's date.

Every consumer (award, stats query, scheduled reset, manual reset) must
go through :class:`ResetClock` so the boundary is computed one way only.
Naive datetimes are interpreted as UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta

from ensign.constants import (
    DEFAULT_DAYLIGHT_UTC_OFFSET,
    DEFAULT_RESET_HOUR,
    DEFAULT_RESET_MINUTE,
    DEFAULT_STANDARD_UTC_OFFSET,
)


def _nth_sunday(year: int, month: int, n: int) -> date:
    first = date(year, month, 1)
    # weekday(): Monday=0 … Sunday=6
    offset = (6 - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class ResetClock:
    """Computes effective days and reset instants for one fixed civil zone."""

    reset_hour: int = DEFAULT_RESET_HOUR
    reset_minute: int = DEFAULT_RESET_MINUTE
    standard_offset_hours: int = DEFAULT_STANDARD_UTC_OFFSET
    daylight_offset_hours: int = DEFAULT_DAYLIGHT_UTC_OFFSET

    # -------------------------------------------------------------------
    # Civil time
    # -------------------------------------------------------------------
    def is_daylight(self, moment: datetime) -> bool:
        utc = _as_utc(moment)
        year = utc.year
        # Transition instants expressed in UTC
        starts = datetime.combine(_nth_sunday(year, 3, 2), time(2), tzinfo=UTC) - timedelta(
            hours=self.standard_offset_hours
        )
        ends = datetime.combine(_nth_sunday(year, 11, 1), time(2), tzinfo=UTC) - timedelta(
            hours=self.daylight_offset_hours
        )
        return starts <= utc < ends

    def utc_offset(self, moment: datetime) -> timedelta:
        hours = self.daylight_offset_hours if self.is_daylight(moment) else self.standard_offset_hours
        return timedelta(hours=hours)

    def to_civil(self, moment: datetime) -> datetime:
        """Naive civil wall-clock time for *moment*."""
        utc = _as_utc(moment)
        return (utc + self.utc_offset(utc)).replace(tzinfo=None)

    # -------------------------------------------------------------------
    # Effective day
    # -------------------------------------------------------------------
    def effective_day(self, moment: datetime | None = None) -> date:
        civil = self.to_civil(moment or datetime.now(UTC))
        if (civil.hour, civil.minute) < (self.reset_hour, self.reset_minute):
            return civil.date() - timedelta(days=1)
        return civil.date()

    def effective_day_key(self, moment: datetime | None = None) -> str:
        """ISO ``YYYY-MM-DD`` key used as the ``daily_xp.effective_date`` column."""
        return self.effective_day(moment).isoformat()

    def day_key_before(self, days: int, moment: datetime | None = None) -> str:
        """Key of the effective day *days* days before the current one."""
        return (self.effective_day(moment) - timedelta(days=days)).isoformat()

    # -------------------------------------------------------------------
    # Next boundary
    # -------------------------------------------------------------------
    def next_reset_at(self, moment: datetime | None = None) -> datetime:
        """UTC instant at which the next effective day begins."""
        utc = _as_utc(moment or datetime.now(UTC))
        civil = self.to_civil(utc)
        target = civil.replace(
            hour=self.reset_hour, minute=self.reset_minute, second=0, microsecond=0
        )
        if civil >= target:
            target += timedelta(days=1)

        # The offset at the target may differ from the current one across a
        # DST transition; resolve it from a first guess.
        guess = target.replace(tzinfo=UTC) - self.utc_offset(utc)
        return target.replace(tzinfo=UTC) - self.utc_offset(guess)

    def seconds_until_next_reset(self, moment: datetime | None = None) -> float:
        utc = _as_utc(moment or datetime.now(UTC))
        return (self.next_reset_at(utc) - utc).total_seconds()
