"""
Minute-of-day helpers.

All engine arithmetic happens on naive local datetimes: a deployment serves a
single timezone, so no offsets are applied anywhere.
"""

from datetime import date, datetime, time, timedelta
from typing import Union

from .constants import MINUTES_PER_DAY, SECONDS_PER_HOUR

MinuteLike = Union[int, str, time]


def parse_minute_of_day(value: MinuteLike) -> int:
    """
    Convert ``"HH:MM"``, a ``time`` or an int into a minute-of-day offset.

    ``"24:00"`` is accepted as end of day (1440).
    """
    if isinstance(value, bool):
        raise ValueError("Boolean is not a valid time of day")
    if isinstance(value, int):
        minutes = value
    elif isinstance(value, time):
        minutes = value.hour * 60 + value.minute
    elif isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) != 2 or not all(part.isdigit() for part in parts):
            raise ValueError(f"Invalid time format '{value}', expected HH:MM")
        hours, mins = int(parts[0]), int(parts[1])
        if mins >= 60:
            raise ValueError(f"Invalid minutes in '{value}'")
        minutes = hours * 60 + mins
    else:
        raise ValueError(f"Cannot convert {type(value)} to minute of day")

    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise ValueError(f"Minute of day out of range: {minutes}")
    return minutes


def format_minute_of_day(minutes: int) -> str:
    """Render a minute offset as zero-padded ``HH:MM``."""
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def slot_start_datetime(day: date, start_minute: int) -> datetime:
    return datetime.combine(day, time.min) + timedelta(minutes=start_minute)


def hours_until(start: datetime, now: datetime) -> float:
    """Signed hours between ``now`` and ``start``."""
    return (start - now).total_seconds() / SECONDS_PER_HOUR
