"""
Weekly attainment: how many distinct days were studied in the current
Monday-start week, compared with the goal's weekly target.
"""

from datetime import date, timedelta
from typing import Iterable, Optional

from tally.config import settings
from tally.models.study import WeeklyAttainment
from tally.services.study.calendar import monday_of_week


def week_days(today: date) -> list[date]:
    """The seven day keys of the week containing ``today``, Monday first."""
    monday = monday_of_week(today)
    return [monday + timedelta(days=offset) for offset in range(7)]


def weekly_study_days(study_days: Iterable[date], today: date) -> int:
    """Number of days of the current week (Mon..Sun) present in ``study_days``."""
    days = set(study_days)
    return sum(1 for day in week_days(today) if day in days)


def weekly_attainment(
    study_days: Iterable[date],
    today: date,
    target_days: Optional[int] = None,
) -> WeeklyAttainment:
    """
    Compare this week's study days with the weekly target.

    Args:
        study_days: Day keys with recorded study.
        today: Reference day selecting the week.
        target_days: Goal's weekly target; ``DEFAULT_WEEKLY_TARGET_DAYS``
            when the goal has none.
    """
    target = target_days or settings.DEFAULT_WEEKLY_TARGET_DAYS
    studied = weekly_study_days(study_days, today)
    return WeeklyAttainment(
        week_start=monday_of_week(today),
        days_studied=studied,
        target_days=target,
        achieved=studied >= target,
    )
