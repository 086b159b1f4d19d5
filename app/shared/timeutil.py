"""Wall-clock helpers shared by the calendar, appointment and notification code"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

NOON = time(12, 0)
MINUTES_PER_DAY = 24 * 60

_HHMM_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$", re.ASCII)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def anchor_noon(day: Union[date, datetime]) -> datetime:
    """
    Store a day-only event at local 12:00.

    Keeps the calendar day stable under timezone/DST arithmetic when only the
    day matters.
    """
    if isinstance(day, datetime):
        day = day.date()
    return datetime.combine(day, NOON)


def parse_hhmm(value: Optional[str]) -> Optional[tuple[int, int]]:
    """Parse "HH:MM" into (hours, minutes); None when malformed"""
    if not value:
        return None
    match = _HHMM_PATTERN.match(value.strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def compute_end_time(start_time: str, duration_minutes: int) -> str:
    """start_time + duration, wrapped at midnight ("23:45" + 30 -> "00:15")"""
    parsed = parse_hhmm(start_time)
    if parsed is None:
        raise ValueError(f"Invalid start time: {start_time!r}")
    hours, minutes = parsed
    end = (hours * 60 + minutes + duration_minutes) % MINUTES_PER_DAY
    return f"{end // 60:02d}:{end % 60:02d}"


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Local midnight of ``day`` and the last microsecond of it"""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)
