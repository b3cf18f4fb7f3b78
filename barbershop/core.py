# barbershop/core.py
"""Time-of-day arithmetic and the appointment overlap check.

Times travel as ``HH:mm`` strings and are compared as minutes since
midnight. Every interval is half-open: an appointment ending at 10:45 does
not collide with one starting at 10:45.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, NamedTuple, Optional, Union
from zoneinfo import ZoneInfo

from barbershop.config import TIMEZONE
from barbershop.data import DEFAULT_SERVICE_DURATION

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class MalformedTimeError(ValueError):
    """Raised when a time of day is not a valid ``HH:mm`` string."""


class Slot(NamedTuple):
    start_time: str
    duration_minutes: Optional[int] = None

    @property
    def duration(self) -> int:
        return resolve_duration(self.duration_minutes)

    @property
    def bounds(self) -> tuple[int, int]:
        start = parse_hhmm(self.start_time)
        return start, start + self.duration


def resolve_duration(duration_minutes: Optional[int]) -> int:
    if not duration_minutes or duration_minutes <= 0:
        return DEFAULT_SERVICE_DURATION
    return duration_minutes


def parse_hhmm(value: Union[str, time, None]) -> int:
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if not isinstance(value, str):
        raise MalformedTimeError(f"Invalid time {value!r}, expected HH:mm")
    match = HHMM_PATTERN.match(value.strip())
    if match is None:
        raise MalformedTimeError(f"Invalid time {value!r}, expected HH:mm")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_minutes(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def overlaps(start, end, other_start, other_end) -> bool:
    return start < other_end and end > other_start


def has_conflict(candidate: Slot, existing: Iterable[Slot]) -> bool:
    start, end = candidate.bounds
    for other in existing:
        other_start, other_end = other.bounds
        if overlaps(start, end, other_start, other_end):
            return True
    return False


def generate_slots(open_time: Union[str, time], close_time: Union[str, time], step_minutes: int) -> list[str]:
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")

    current = parse_hhmm(open_time)
    close = parse_hhmm(close_time)

    slots = []
    while current < close:
        slots.append(format_minutes(current))
        current += step_minutes
    return slots


def combine(day: date, hhmm: str) -> datetime:
    return datetime.combine(day, datetime.min.time()) + timedelta(minutes=parse_hhmm(hhmm))


def utcnow() -> datetime:
    """Aware UTC timestamp for stored audit and expiry columns."""
    return datetime.now(timezone.utc)


def shop_now(tz_name: str = TIMEZONE) -> datetime:
    """Naive wall-clock time at the shop, comparable with ``combine``."""
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)
