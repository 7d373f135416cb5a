"""
Calendar helpers for day-granularity study bookkeeping.

All ledger keys are ``datetime.date`` values ("day keys"). Aware datetimes
are first converted into the configured study time zone so an entry logged
at 23:30 local time lands on that local day, not on the UTC day.

Weeks start on Monday.
"""

from __future__ import annotations

import calendar as _calendar
import datetime as dt
from typing import Optional, Union

import pytz

from tally.config import settings

DayLike = Union[dt.date, dt.datetime]


def study_tz() -> dt.tzinfo:
    """Time zone used to turn timestamps into day keys."""
    return pytz.timezone(settings.STUDY_TIMEZONE)


def start_of_day(t: DayLike, tz: Optional[dt.tzinfo] = None) -> dt.date:
    """
    Normalize a timestamp to its day key.

    Args:
        t: A date (returned unchanged) or datetime. Naive datetimes are
            taken as wall-clock time in the study zone.
        tz: Override for the study time zone.

    Returns:
        The calendar date the timestamp falls on.
    """
    if isinstance(t, dt.datetime):
        if t.tzinfo is not None:
            t = t.astimezone(tz or study_tz())
        return t.date()
    return t


def today(tz: Optional[dt.tzinfo] = None) -> dt.date:
    """Current day key in the study time zone."""
    return dt.datetime.now(dt.timezone.utc).astimezone(tz or study_tz()).date()


def days_between(a: DayLike, b: DayLike) -> int:
    """Signed number of calendar days from ``a`` to ``b`` (b - a)."""
    return (start_of_day(b) - start_of_day(a)).days


def monday_of_week(t: DayLike) -> dt.date:
    """Day key of the Monday on or before ``t``."""
    day = start_of_day(t)
    return day - dt.timedelta(days=day.weekday())


def add_months(day: dt.date, months: int) -> dt.date:
    """
    Shift a date by whole calendar months.

    The day of month is clamped to the target month's length, so
    2024-03-31 minus one month is 2024-02-29.
    """
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = _calendar.monthrange(year, month)[1]
    return dt.date(year, month, min(day.day, last_day))


def days_until(target: Optional[DayLike], reference: DayLike) -> Optional[int]:
    """Days from ``reference`` to ``target`` (exam countdown); None without a target."""
    if target is None:
        return None
    return days_between(reference, target)
