"""
Study Streaks

Consecutive-day streak calculations over a set of study day keys.

The current streak stays alive through today when the user studied
yesterday but has not logged anything yet today; it only breaks once a
whole day passes without study.

Usage:
    from tally.services.study.streaks import build_streak_data, current_streak

    days = ledger.distinct_study_days()
    streak = current_streak(days, today)
    data = build_streak_data(days, today)
"""

from datetime import date, timedelta
from typing import Iterable, Optional

from tally.config import settings
from tally.models.study import StreakData
from tally.services.study.weekly import weekly_study_days


def _anchor(days: set[date], today: date) -> date:
    return today if today in days else today - timedelta(days=1)


def current_streak(study_days: Iterable[date], today: date) -> int:
    """
    Count consecutive study days ending at today (or yesterday).

    Args:
        study_days: Day keys with recorded study, in any order.
        today: Reference day.

    Returns:
        Length of the current run, 0 when neither today nor yesterday
        was a study day.
    """
    days = set(study_days)
    cursor = _anchor(days, today)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def streak_start(study_days: Iterable[date], today: date) -> Optional[date]:
    """First day of the current streak, or None without one."""
    days = set(study_days)
    length = current_streak(days, today)
    if length == 0:
        return None
    return _anchor(days, today) - timedelta(days=length - 1)


def longest_streak(study_days: Iterable[date]) -> int:
    """Length of the longest consecutive run ever recorded."""
    sorted_days = sorted(set(study_days))
    if not sorted_days:
        return 0

    longest = 1
    current = 1
    for previous, day in zip(sorted_days, sorted_days[1:]):
        if day == previous + timedelta(days=1):
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def build_streak_data(study_days: Iterable[date], today: date) -> StreakData:
    """
    Full streak summary for the dashboard.

    Milestones come from ``settings.STREAK_MILESTONES``; a milestone counts
    as reached once the longest streak has hit it.
    """
    days = {d for d in study_days if d <= today}
    current = current_streak(days, today)
    longest = max(longest_streak(days), current)

    milestones = settings.STREAK_MILESTONES
    reached = [m for m in milestones if longest >= m]
    next_milestone = next((m for m in milestones if m > current), None)

    return StreakData(
        current_streak=current,
        longest_streak=longest,
        streak_start=streak_start(days, today),
        last_study_day=max(days) if days else None,
        is_active_today=today in days,
        days_this_week=weekly_study_days(days, today),
        milestones_reached=reached,
        next_milestone=next_milestone,
    )
