"""Wall-clock helpers for minute-of-day arithmetic."""
from __future__ import annotations

import re

MINUTES_PER_DAY = 24 * 60

_CLOCK_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


class ClockParseError(ValueError):
    """Raised when a wall-clock string is not a valid HH:MM time."""

    def __init__(self, value: object):
        super().__init__(f"Invalid clock time {value!r}; expected HH:MM in 24h format")
        self.value = value


def parse_clock(value: str) -> int:
    """Return minutes since midnight for a strict ``HH:MM`` string."""
    if not isinstance(value, str):
        raise ClockParseError(value)
    match = _CLOCK_PATTERN.match(value)
    if not match:
        raise ClockParseError(value)
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ClockParseError(value)
    return hours * 60 + minutes


def to_minutes(value: str) -> int:
    """
    Lossy conversion of ``HH:MM`` to minutes since midnight.

    Malformed input yields ``0``. Prefer :func:`parse_clock` wherever the caller
    can surface an error instead of silently scheduling at midnight.
    """
    try:
        return parse_clock(value)
    except ClockParseError:
        return 0


def to_clock(total_minutes: int) -> str:
    total_minutes %= MINUTES_PER_DAY
    hours = total_minutes // 60
    minutes = total_minutes % 60
    return f"{hours:02d}:{minutes:02d}"


def wrapped_end(start: int, end: int) -> int:
    """Return ``end`` on the same timeline as ``start``, crossing midnight if needed."""
    if end < start:
        return end + MINUTES_PER_DAY
    return end
