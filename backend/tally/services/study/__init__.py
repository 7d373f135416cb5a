"""
Study Tracking Services

Day-granularity bookkeeping for study goals: the progress ledger and the
pure calculators that derive daily quotas, streaks, weekly attainment and
the activity heatmap from it.

Modules:
- calendar: day keys, Monday-start weeks, month arithmetic
- ledger: progress ledger with unit-of-work mutation log
- quota: daily quota strategy chain
- streaks: current/longest streaks and milestones
- weekly: weekly study days and attainment
- heatmap: per-day sums and intensity levels
- tracker: service facade that persists ledger changes

Usage:
    from tally.services.study import ProgressLedger, daily_quota, current_streak
    from tally.services.study.tracker import StudyTrackerService
"""

from tally.services.study.heatmap import (
    activity_level,
    build_heatmap_response,
    heatmap,
    heatmap_weeks,
)
from tally.services.study.ledger import Mutation, ProgressChange, ProgressLedger
from tally.services.study.quota import (
    LegacyGoalStrategy,
    ManualFallbackStrategy,
    MaterialDeadlineStrategy,
    QuotaCalculator,
    QuotaStrategy,
    daily_quota,
)
from tally.services.study.streaks import (
    build_streak_data,
    current_streak,
    longest_streak,
    streak_start,
)
from tally.services.study.weekly import weekly_attainment, weekly_study_days

__all__ = [
    # Ledger
    "Mutation",
    "ProgressChange",
    "ProgressLedger",
    # Quota
    "LegacyGoalStrategy",
    "ManualFallbackStrategy",
    "MaterialDeadlineStrategy",
    "QuotaCalculator",
    "QuotaStrategy",
    "daily_quota",
    # Streaks
    "build_streak_data",
    "current_streak",
    "longest_streak",
    "streak_start",
    # Weekly
    "weekly_attainment",
    "weekly_study_days",
    # Heatmap
    "activity_level",
    "build_heatmap_response",
    "heatmap",
    "heatmap_weeks",
]
