"""
Unit Tests for the activity heatmap.

Tests for:
- Per-day sums across materials within the month window
- Activity level bucketing
- Monday-aligned week grid
- Full heatmap response
"""

from datetime import date, timedelta
from unittest.mock import patch

import pytest

from tally.models.study import StudyEntry
from tally.services.study.heatmap import (
    activity_level,
    build_heatmap_response,
    heatmap,
    heatmap_weeks,
    window_start,
)


def entry(day: date, amount: int, material_id: str = "mat-1") -> StudyEntry:
    return StudyEntry(material_id=material_id, day=day, amount=amount)


class TestHeatmap:
    """Tests for heatmap sums."""

    def test_same_day_entries_summed_across_materials(self, today):
        result = heatmap([entry(today, 3, "mat-1"), entry(today, 4, "mat-2")], 4, today)
        assert result == {today: 7}

    def test_window_bounds_inclusive(self, today):
        start = date(2024, 1, 15)
        entries = [
            entry(start, 1),
            entry(start - timedelta(days=1), 100),
            entry(today, 2),
            entry(today + timedelta(days=1), 100),
        ]

        assert heatmap(entries, 4, today) == {start: 1, today: 2}

    def test_window_start_uses_calendar_months(self, today):
        assert window_start(4, today) == date(2024, 1, 15)
        assert window_start(1, date(2024, 3, 31)) == date(2024, 2, 29)

    def test_empty(self, today):
        assert heatmap([], 4, today) == {}

    def test_idempotent(self, today):
        entries = [entry(today, 3), entry(today - timedelta(days=3), 5)]
        assert heatmap(entries, 4, today) == heatmap(entries, 4, today)


class TestActivityLevel:
    """Tests for activity level bucketing."""

    @pytest.mark.parametrize(
        "amount,max_amount,expected",
        [
            pytest.param(0, 10, 0, id="no_activity"),
            pytest.param(5, 0, 0, id="no_max"),
            pytest.param(1, 10, 1, id="low"),
            pytest.param(3, 10, 2, id="medium"),
            pytest.param(5, 10, 3, id="medium_high"),
            pytest.param(8, 10, 4, id="high"),
            pytest.param(10, 10, 4, id="max"),
        ],
    )
    def test_levels(self, amount, max_amount, expected):
        assert activity_level(amount, max_amount) == expected

    @patch("tally.services.study.heatmap.settings")
    def test_thresholds_from_settings(self, mock_settings):
        mock_settings.ACTIVITY_LEVEL_HIGH = 0.9
        mock_settings.ACTIVITY_LEVEL_MEDIUM_HIGH = 0.6
        mock_settings.ACTIVITY_LEVEL_MEDIUM = 0.3

        assert activity_level(8, 10) == 3


class TestHeatmapWeeks:
    """Tests for the week grid."""

    def test_grid_is_monday_aligned(self, today):
        weeks = heatmap_weeks(1, today)

        # window starts Monday 2024-04-15
        assert weeks[0][0] == date(2024, 4, 15)
        assert all(len(week) == 7 for week in weeks)
        assert all(week[0].weekday() == 0 for week in weeks)

    def test_grid_starts_before_window_start(self):
        # 2024-01-17 is a Wednesday
        weeks = heatmap_weeks(1, date(2024, 2, 17))
        assert weeks[0][0] == date(2024, 1, 15)

    def test_days_after_today_are_none(self, today):
        last_week = heatmap_weeks(1, today)[-1]

        assert last_week[:3] == [date(2024, 5, 13), date(2024, 5, 14), today]
        assert last_week[3:] == [None, None, None, None]


class TestBuildHeatmapResponse:
    """Tests for the heatmap response model."""

    def test_response(self, today):
        entries = [
            entry(today, 6),
            entry(today, 2, "mat-2"),
            entry(today - timedelta(days=1), 2),
            entry(date(2023, 1, 1), 50),
        ]

        response = build_heatmap_response(entries, 4, today)

        assert response.start == date(2024, 1, 15)
        assert response.end == today
        assert response.months == 4
        assert response.total_study_days == 2
        assert response.total_amount == 10
        assert response.max_daily_amount == 8
        assert [(d.day, d.amount, d.level) for d in response.days] == [
            (today - timedelta(days=1), 2, 2),
            (today, 8, 4),
        ]
        assert response.weeks[0][0] == date(2024, 1, 15)

    def test_empty_response(self, today):
        response = build_heatmap_response([], 4, today)

        assert response.days == []
        assert response.total_amount == 0
        assert response.max_daily_amount == 0
