"""Cron-like timing specifications: bit fields for minutes, hours and days."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

_NUMBER = re.compile(r"[0-9]+")

MINUTE_RANGE = (0, 59)
HOUR_RANGE = (0, 23)
DAY_RANGE = (0, 6)


class TimingError(ValueError):
    """Raised when a timing field cannot be parsed."""


def _check_bounds(low: int, high: int) -> None:
    if not low <= high <= low + 63:
        raise TimingError(f"invalid field bounds {low}..{high}")


def _parse_number(text: str, pos: int) -> tuple[int, int]:
    match = _NUMBER.match(text, pos)
    if match is None:
        raise TimingError(f"expected a number at position {pos} in {text!r}")
    return int(match.group()), match.end()


def parse_field(text: str, low: int, high: int) -> int:
    """Parse a crontab-style field ("*", "5", "1-3", "1,4-6") into a bit mask.

    Bit ``n - low`` is set for every value ``n`` selected by the field.
    Parsing stops at the first character that cannot continue the list.
    """
    if not text:
        raise TimingError("empty timing field")
    if text.startswith("*"):
        return (1 << (high - low + 1)) - 1

    _check_bounds(low, high)
    field = 0
    pos = 0
    while True:
        start, pos = _parse_number(text, pos)
        end = start
        if text[pos:pos + 1] == "-":
            end, pos = _parse_number(text, pos + 1)
        if start < low or end < start or high < end:
            raise TimingError(f"range {start}-{end} outside {low}..{high}")
        for value in range(start, end + 1):
            field |= 1 << (value - low)
        if text[pos:pos + 1] != ",":
            return field
        pos += 1


def format_field(field: int, low: int, high: int) -> str:
    """Render a bit mask as a crontab-style field; the full range becomes "*"."""
    if not low <= high <= low + 63:
        return ""
    parts: list[str] = []
    start: int | None = None
    for value in range(low, high + 2):
        is_set = value <= high and (field >> (value - low)) & 1
        if is_set and start is None:
            start = value
        elif not is_set and start is not None:
            stop = value - 1
            if start == low and stop == high:
                parts.append("*")
            elif start == stop:
                parts.append(str(start))
            else:
                parts.append(f"{start}-{stop}")
            start = None
    return ",".join(parts)


@dataclass(frozen=True)
class Timing:
    """When a task runs: bit masks of minutes, hours and days of the week.

    Days of the week count from Sunday (bit 0) to Saturday (bit 6).
    """

    minutes: int
    hours: int
    daysofweek: int

    @classmethod
    def from_strings(cls, minutes: str = "*", hours: str = "*",
                     daysofweek: str = "*") -> "Timing":
        """Build a timing from the three textual crontab fields."""
        return cls(
            minutes=parse_field(minutes, *MINUTE_RANGE),
            hours=parse_field(hours, *HOUR_RANGE),
            daysofweek=parse_field(daysofweek, *DAY_RANGE),
        )

    def matches(self, moment: datetime | None = None) -> bool:
        """Tell whether the task is due at ``moment`` (local time, default now)."""
        if moment is None:
            moment = datetime.now()
        day = moment.isoweekday() % 7
        return bool(
            (self.daysofweek >> day) & 1
            and (self.hours >> moment.hour) & 1
            and (self.minutes >> moment.minute) & 1
        )

    def __str__(self) -> str:
        return " ".join((
            format_field(self.minutes, *MINUTE_RANGE),
            format_field(self.hours, *HOUR_RANGE),
            format_field(self.daysofweek, *DAY_RANGE),
        ))