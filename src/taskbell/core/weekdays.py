# src/taskbell/core/weekdays.py

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from enum import IntEnum
from typing import Any

logger = logging.getLogger(__name__)


class Weekday(IntEnum):
    """
    Day of week, numbered 1..7 with 1 = Sunday.

    This is the only representation used inside the package. Legacy on-disk forms
    (day names, digit strings, JSON-encoded lists) are converted by parse()/parse_repeat_days().
    """

    SUNDAY = 1
    MONDAY = 2
    TUESDAY = 3
    WEDNESDAY = 4
    THURSDAY = 5
    FRIDAY = 6
    SATURDAY = 7

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def cron_name(self) -> str:
        """Three-letter lowercase name as understood by cron-style triggers."""
        return self.name[:3].lower()

    @classmethod
    def from_python_weekday(cls, value: int) -> Weekday:
        """datetime.weekday() (Monday=0) -> Weekday."""
        return cls((int(value) + 1) % 7 + 1)

    @classmethod
    def parse(cls, raw: Any) -> Weekday:
        if isinstance(raw, Weekday):
            return raw
        if isinstance(raw, bool):
            raise ValueError(f"Not a weekday: {raw!r}")
        if isinstance(raw, int):
            return cls(raw)

        s = str(raw or "").strip()
        if not s:
            raise ValueError("Empty weekday")
        if s.isdigit():
            return cls(int(s))

        key = s.lower()
        for day in cls:
            name = day.name.lower()
            if key == name or key == name[:3]:
                return day
        raise ValueError(f"Not a weekday: {raw!r}")


def parse_repeat_days(raw: Any) -> tuple[Weekday, ...]:
    """
    Normalize any stored/submitted repeatDay value into a sorted, de-duplicated tuple.

    Accepts a list of names/numbers, a single value, or a JSON-encoded list string.
    Unknown entries are skipped with a warning.
    """
    if raw is None:
        return ()

    items: Iterable[Any]
    if isinstance(raw, str):
        s = raw.strip()
        if s.startswith("["):
            try:
                decoded = json.loads(s)
            except ValueError:
                logger.warning("Malformed JSON repeatDay %r; ignoring", raw)
                return ()
            items = decoded if isinstance(decoded, list) else [decoded]
        else:
            items = [p for p in s.replace(",", " ").split() if p]
    elif isinstance(raw, (list, tuple, set, frozenset)):
        items = raw
    else:
        items = [raw]

    days: set[Weekday] = set()
    for item in items:
        try:
            days.add(Weekday.parse(item))
        except ValueError:
            logger.warning("Skipping unknown weekday %r", item)
    return tuple(sorted(days))


def days_to_names(days: Iterable[Weekday]) -> list[str]:
    return [d.label for d in sorted(set(days))]
