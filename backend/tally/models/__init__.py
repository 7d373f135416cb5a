"""Pydantic models for the application."""

from tally.models.study import (
    AutoQuota,
    Goal,
    GoalConfig,
    ManualQuota,
    Material,
    QuotaConfig,
    StudyEntry,
)

__all__ = [
    "AutoQuota",
    "Goal",
    "GoalConfig",
    "ManualQuota",
    "Material",
    "QuotaConfig",
    "StudyEntry",
]
