"""
Activity Heatmap

Sums logged amounts per day over a trailing window of calendar months and
buckets them into intensity levels for the heatmap grid.

Usage:
    from tally.services.study.heatmap import build_heatmap_response, heatmap

    by_day = heatmap(ledger.entries, months=4, today=today)
    response = build_heatmap_response(ledger.entries, months=4, today=today)
"""

from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Optional

from tally.config import settings
from tally.models.study import HeatmapDay, HeatmapResponse, StudyEntry
from tally.services.study.calendar import add_months, monday_of_week, today as current_day


def window_start(months: int, today: date) -> date:
    """First day key of the heatmap window."""
    return add_months(today, -months)


def heatmap(
    entries: Iterable[StudyEntry],
    months: int = 4,
    today: Optional[date] = None,
) -> dict[date, int]:
    """
    Sum entry amounts per day within ``[today - months, today]``.

    Entries of every material are summed together. Days without entries
    are absent from the result.
    """
    if today is None:
        today = current_day()

    start = window_start(months, today)
    totals: dict[date, int] = defaultdict(int)
    for entry in entries:
        if start <= entry.day <= today:
            totals[entry.day] += entry.amount
    return dict(totals)


def activity_level(amount: int, max_amount: int) -> int:
    """
    Activity level (0-4) of a day relative to the busiest day in the window.

    Thresholds are configured in settings (ACTIVITY_LEVEL_*).
    """
    if max_amount <= 0 or amount <= 0:
        return 0

    ratio = amount / max_amount
    if ratio >= settings.ACTIVITY_LEVEL_HIGH:
        return 4
    elif ratio >= settings.ACTIVITY_LEVEL_MEDIUM_HIGH:
        return 3
    elif ratio >= settings.ACTIVITY_LEVEL_MEDIUM:
        return 2
    else:
        return 1


def heatmap_weeks(months: int, today: date) -> list[list[Optional[date]]]:
    """
    Monday-aligned calendar grid covering the heatmap window.

    The first week starts on the Monday on or before the window start and
    the last week is the one containing today. Slots after today are None.
    """
    cursor = monday_of_week(window_start(months, today))
    weeks: list[list[Optional[date]]] = []
    while cursor <= today:
        week: list[Optional[date]] = []
        for offset in range(7):
            day = cursor + timedelta(days=offset)
            week.append(day if day <= today else None)
        weeks.append(week)
        cursor += timedelta(days=7)
    return weeks


def build_heatmap_response(
    entries: Iterable[StudyEntry],
    months: int,
    today: date,
) -> HeatmapResponse:
    """Heatmap days with levels, the week grid and window totals."""
    totals = heatmap(entries, months, today)
    max_amount = max(totals.values(), default=0)

    days = [
        HeatmapDay(day=day, amount=amount, level=activity_level(amount, max_amount))
        for day, amount in sorted(totals.items())
    ]

    return HeatmapResponse(
        start=window_start(months, today),
        end=today,
        months=months,
        days=days,
        weeks=heatmap_weeks(months, today),
        total_study_days=sum(1 for amount in totals.values() if amount > 0),
        total_amount=sum(totals.values()),
        max_daily_amount=max_amount,
    )
