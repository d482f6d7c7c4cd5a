# tests/test_clock.py

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from taskbell.core import clock as clock_mod
from taskbell.core.clock import DisplayClock, parse_iso, to_utc_iso
from taskbell.core.weekdays import Weekday, days_to_names, parse_repeat_days


def _clock(utc_now: datetime, tz: str = "Asia/Manila") -> DisplayClock:
    return DisplayClock(tz, now_fn=lambda: utc_now)


def test_weekday_numbering_starts_on_sunday() -> None:
    assert Weekday.from_python_weekday(0) == Weekday.MONDAY
    assert Weekday.from_python_weekday(6) == Weekday.SUNDAY
    assert int(Weekday.SUNDAY) == 1
    assert int(Weekday.SATURDAY) == 7
    assert Weekday.WEDNESDAY.cron_name == "wed"


def test_weekday_parse_accepts_names_and_numbers() -> None:
    assert Weekday.parse("mon") == Weekday.MONDAY
    assert Weekday.parse("Sunday") == Weekday.SUNDAY
    assert Weekday.parse(7) == Weekday.SATURDAY
    assert Weekday.parse("3") == Weekday.TUESDAY

    with pytest.raises(ValueError):
        Weekday.parse("funday")
    with pytest.raises(ValueError):
        Weekday.parse(True)


def test_parse_repeat_days_normalizes_legacy_forms() -> None:
    assert parse_repeat_days('["Monday", "Wednesday"]') == (Weekday.MONDAY, Weekday.WEDNESDAY)
    assert parse_repeat_days("wed, mon mon") == (Weekday.MONDAY, Weekday.WEDNESDAY)
    assert parse_repeat_days(["Monday", "Blursday"]) == (Weekday.MONDAY,)
    assert parse_repeat_days(None) == ()
    assert days_to_names([Weekday.FRIDAY, Weekday.MONDAY]) == ["Monday", "Friday"]


def test_today_uses_display_timezone_not_utc() -> None:
    # Sunday 17:00 UTC is already Monday 01:00 in Manila.
    c = _clock(datetime(2026, 10, 18, 17, 0, tzinfo=UTC))
    assert c.today() == Weekday.MONDAY
    assert c.local_date(c.now()) == date(2026, 10, 19)
    assert c.time_of_day(c.now()) == (1, 0)


def test_next_occurrence_is_at_or_after() -> None:
    c = _clock(datetime(2026, 10, 19, 0, 0, tzinfo=UTC))
    after = c.at(date(2026, 10, 19), 8, 0)  # Monday 08:00

    assert c.next_occurrence(Weekday.MONDAY, 9, 0, after) == c.at(date(2026, 10, 19), 9, 0)
    assert c.next_occurrence(Weekday.MONDAY, 8, 0, after) == after
    assert c.next_occurrence(Weekday.MONDAY, 7, 0, after) == c.at(date(2026, 10, 26), 7, 0)
    assert c.next_occurrence(Weekday.SUNDAY, 7, 0, after) == c.at(date(2026, 10, 25), 7, 0)


def test_next_occurrence_keeps_wall_clock_across_dst() -> None:
    c = _clock(datetime(2026, 10, 30, 16, 0, tzinfo=UTC), tz="America/New_York")
    after = c.at(date(2026, 10, 30), 12, 0)  # Friday, still EDT

    occ = c.next_occurrence(Weekday.MONDAY, 9, 0, after)

    assert occ.date() == date(2026, 11, 2)
    assert (occ.hour, occ.minute) == (9, 0)
    assert occ.utcoffset() == timedelta(hours=-5)


def test_anchor_time_reads_hhmm_as_display_wall_clock() -> None:
    c = _clock(datetime(2026, 10, 19, 0, 0, tzinfo=UTC))

    anchored = c.anchor_time("09:30")

    assert anchored == datetime(2026, 10, 19, 1, 30, tzinfo=UTC)
    assert c.time_of_day(anchored) == (9, 30)


def test_anchor_time_drops_seconds_from_aware_input() -> None:
    c = _clock(datetime(2026, 10, 19, 0, 0, tzinfo=UTC))
    anchored = c.anchor_time(datetime(2026, 10, 19, 1, 30, 42, tzinfo=UTC))
    assert anchored == datetime(2026, 10, 19, 1, 30, tzinfo=UTC)


def test_format_time_is_12_hour() -> None:
    c = _clock(datetime(2026, 10, 19, 0, 0, tzinfo=UTC))
    assert c.format_time(datetime(2026, 10, 19, 1, 5, tzinfo=UTC)) == "9:05 AM"
    assert c.format_time(datetime(2026, 10, 19, 5, 30, tzinfo=UTC)) == "1:30 PM"
    assert c.format_time(datetime(2026, 10, 18, 16, 15, tzinfo=UTC)) == "12:15 AM"


def test_iso_helpers() -> None:
    assert parse_iso("2026-10-19T01:00:00.000Z") == datetime(2026, 10, 19, 1, 0, tzinfo=UTC)
    assert parse_iso("2026-10-19T01:00:00") == datetime(2026, 10, 19, 1, 0, tzinfo=UTC)
    assert to_utc_iso(datetime(2026, 10, 19, 1, 0, tzinfo=UTC)) == "2026-10-19T01:00:00+00:00"
    with pytest.raises(ValueError):
        parse_iso("")


def test_get_clock_requires_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(clock_mod, "_CLOCK", None)
    with pytest.raises(RuntimeError):
        clock_mod.get_clock()

    configured = clock_mod.configure_clock("Asia/Manila")
    assert clock_mod.get_clock() is configured
