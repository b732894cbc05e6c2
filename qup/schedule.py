"""Opening-hours gate.

A business may only activate its queue while it is open. Hours are kept per
weekday as "HH:MM" strings in the business's own time zone; the window is
half-open, so a store with hours 09:00-17:00 is closed at 17:00 sharp.
"""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from zoneinfo import ZoneInfo

from .errors import NoHours
from .models import WeeklyHours


def local_now(timezone_str: str, now: datetime | None = None) -> datetime:
    """Convert `now` (default: the current instant) to the business zone.

    Naive datetimes are taken to be UTC.
    """
    if now is None:
        now = datetime.now(dt_timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=dt_timezone.utc)
    return now.astimezone(ZoneInfo(timezone_str))


def weekday_index(dt: datetime) -> int:
    """Day-of-week index used by the hours table (Sunday = 0)."""
    return (dt.weekday() + 1) % 7


def parse_hhmm(value: object) -> int:
    """Minutes since midnight for an "HH:MM" string."""
    if not isinstance(value, str):
        raise ValueError(f"not a time: {value!r}")
    hh, sep, mm = value.strip().partition(":")
    if not sep or not hh.isdigit() or not mm.isdigit():
        raise ValueError(f"not a time: {value!r}")
    h, m = int(hh), int(mm)
    if not (0 <= h <= 24 and 0 <= m < 60) or (h == 24 and m != 0):
        raise ValueError(f"not a time: {value!r}")
    return h * 60 + m


def todays_window(hours: WeeklyHours | None, local: datetime) -> tuple[int, int]:
    """(start, end) in minutes for the weekday of `local`.

    Raises:
        NoHours: the table or the weekday's entry is missing or malformed.
    """
    if hours is None:
        raise NoHours("could not obtain the hours of operation for this business")
    start, end = hours.for_weekday(weekday_index(local))
    try:
        return parse_hhmm(start), parse_hhmm(end)
    except ValueError as e:
        raise NoHours("could not obtain the hours of operation for this business") from e


def is_open_now(hours: WeeklyHours | None, timezone: str, now: datetime | None = None) -> bool:
    local = local_now(timezone, now)
    start, end = todays_window(hours, local)
    minute_of_day = local.hour * 60 + local.minute
    return start <= minute_of_day < end
