# src/taskbell/core/clock.py

"""
Clock / timezone adapter.

Every "what day is it" and "what time of day is it" question in the package goes through
a DisplayClock. Task times are civil times-of-day in one fixed display timezone, so raw UTC
instants are never compared against them directly.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta

import pytz

from .weekdays import Weekday

logger = logging.getLogger(__name__)

NowFn = Callable[[], datetime]


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (a trailing 'Z' is accepted). Naive results are UTC."""
    s = (value or "").strip()
    if not s:
        raise ValueError("Empty timestamp")
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def to_utc_iso(instant: datetime) -> str:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC).isoformat()


def _utc_now() -> datetime:
    return datetime.now(UTC)


class DisplayClock:
    """Normalizes "now" and stored timestamps into the fixed display timezone."""

    def __init__(self, timezone_name: str, now_fn: NowFn | None = None) -> None:
        # Unknown names raise pytz.UnknownTimeZoneError: a wrong zone would skew every comparison.
        self._tz = pytz.timezone(timezone_name)
        self._now_fn = now_fn or _utc_now

    @property
    def timezone_name(self) -> str:
        return self._tz.zone

    @property
    def tz(self) -> pytz.BaseTzInfo:
        return self._tz

    def now(self) -> datetime:
        return self.to_display_time(self._now_fn())

    def to_display_time(self, instant: datetime | str) -> datetime:
        if isinstance(instant, str):
            instant = parse_iso(instant)
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        return instant.astimezone(self._tz)

    def localize(self, civil: datetime) -> datetime:
        """Attach the display timezone to a naive wall-clock datetime."""
        if civil.tzinfo is not None:
            return self.to_display_time(civil)
        return self._tz.normalize(self._tz.localize(civil))

    def at(self, day: date, hour: int, minute: int) -> datetime:
        return self.localize(datetime(day.year, day.month, day.day, hour, minute))

    def weekday(self, instant: datetime | str) -> Weekday:
        return Weekday.from_python_weekday(self.to_display_time(instant).weekday())

    def today(self) -> Weekday:
        return self.weekday(self.now())

    def local_date(self, instant: datetime | str) -> date:
        return self.to_display_time(instant).date()

    def time_of_day(self, instant: datetime | str) -> tuple[int, int]:
        local = self.to_display_time(instant)
        return local.hour, local.minute

    def minute_of_day(self, instant: datetime | str) -> int:
        hour, minute = self.time_of_day(instant)
        return hour * 60 + minute

    def next_occurrence(self, weekday: Weekday, hour: int, minute: int, after: datetime) -> datetime:
        """
        Next civil datetime on `weekday` at hour:minute, at or after `after`.

        Arithmetic happens on the naive wall clock and is localized at the end, so a DST
        change between `after` and the result does not move the civil time.
        """
        local_after = self.to_display_time(after).replace(tzinfo=None)
        days_ahead = (int(weekday) - int(Weekday.from_python_weekday(local_after.weekday()))) % 7
        candidate = datetime.combine(local_after.date() + timedelta(days=days_ahead), time(hour, minute))
        if candidate < local_after.replace(second=0, microsecond=0):
            candidate += timedelta(days=7)
        return self.localize(candidate)

    def anchor_time(self, value: datetime | time | str) -> datetime:
        """
        Turn a user-supplied time into the stored taskTime instant (UTC).

        Only hour/minute are significant; naive values are read as display-time wall clock
        and anchored on today's display date.
        """
        if isinstance(value, str):
            s = value.strip()
            if len(s) <= 5 and ":" in s:
                hh, _, mm = s.partition(":")
                value = time(int(hh), int(mm))
            else:
                value = parse_iso(s)

        if isinstance(value, time):
            civil = datetime.combine(self.now().date(), value.replace(second=0, microsecond=0, tzinfo=None))
            return self.localize(civil).astimezone(UTC)

        if value.tzinfo is None:
            return self.localize(value.replace(second=0, microsecond=0)).astimezone(UTC)
        return value.replace(second=0, microsecond=0).astimezone(UTC)

    def format_time(self, instant: datetime | str) -> str:
        """'9:05 AM' style rendering used in alert bodies."""
        local = self.to_display_time(instant)
        hour12 = local.hour % 12 or 12
        suffix = "AM" if local.hour < 12 else "PM"
        return f"{hour12}:{local.minute:02d} {suffix}"


_CLOCK: DisplayClock | None = None


def configure_clock(timezone_name: str, now_fn: NowFn | None = None) -> DisplayClock:
    """Set the process-wide clock. Call once at startup."""
    global _CLOCK
    if _CLOCK is not None and _CLOCK.timezone_name != timezone_name:
        logger.warning(
            "Display timezone changed at runtime: %s -> %s", _CLOCK.timezone_name, timezone_name
        )
    _CLOCK = DisplayClock(timezone_name, now_fn=now_fn)
    logger.info("Display timezone set to %s", _CLOCK.timezone_name)
    return _CLOCK


def get_clock() -> DisplayClock:
    if _CLOCK is None:
        raise RuntimeError("Clock is not configured; call configure_clock() at startup")
    return _CLOCK
