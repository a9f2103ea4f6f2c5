"""Clock and calendar helpers.

Pure functions over ``date``/``time`` values. The whole system runs in a
single local timezone, so all datetimes here are naive.
"""

import re
from datetime import date, datetime, time
from typing import Iterator, Union
from dateutil import parser as date_parser

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])(?::00)?$")


def weekday_of(day: date) -> str:
    """Lowercase English weekday name for a date."""
    return WEEKDAYS[day.weekday()]


def combine(day: date, at: time) -> datetime:
    return datetime.combine(day, at)


def is_future(day: date, at: time, now: datetime) -> bool:
    """True iff the local instant ``day at`` is strictly after ``now``."""
    return combine(day, at) > now


def hours_until(day: date, at: time, now: datetime) -> float:
    """Signed number of hours from ``now`` to ``day at``."""
    return (combine(day, at) - now).total_seconds() / 3600


def minutes_of_day(at: time) -> int:
    return at.hour * 60 + at.minute


def iter_slots(start: time, end: time, step_minutes: int) -> Iterator[time]:
    """
    Yield slot start times across the half-open window [start, end).

    A slot is only yielded if it fits entirely, i.e. ``slot + step <= end``.

    Args:
        start: Window start
        end: Window end
        step_minutes: Slot width, also the distance between consecutive starts

    Yields:
        Slot start times in ascending order
    """
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")

    current = minutes_of_day(start)
    stop = minutes_of_day(end)
    while current + step_minutes <= stop:
        yield time(current // 60, current % 60)
        current += step_minutes


def is_slot_boundary(at: time, start: time, step_minutes: int) -> bool:
    """Check that ``at`` lands on the slot grid anchored at ``start``."""
    if at.second or at.microsecond:
        return False
    return (minutes_of_day(at) - minutes_of_day(start)) % step_minutes == 0


def parse_time(value: str) -> time:
    """
    Parse a 24-hour ``HH:MM`` clock value.

    Raises:
        ValueError: If the value is not a valid minute-resolution time
    """
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def parse_date(value: Union[str, date]) -> date:
    """
    Parse an ISO-8601 calendar date, ignoring any time component.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.isoparse(value.strip()).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD") from e
