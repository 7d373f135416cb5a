"""
Daily Quota Calculation

Resolves how much of a material should be studied today. Resolution runs
an ordered list of strategies; the first one that returns a value wins:

    1. MaterialDeadlineStrategy  material is in auto mode
    2. LegacyGoalStrategy        goal-wide auto mode on a manual material
    3. ManualFallbackStrategy    the configured daily quota

Auto quotas spread the remaining amount over the days left before the
deadline, optionally scaled by the share of the week the user actually
studies (weekly target days / 7). Division always rounds up so the plan
finishes on time. Missing deadlines never raise; resolution falls through
to the manual value.

Usage:
    from tally.services.study.quota import daily_quota

    quota = daily_quota(material, goal.config, today)
"""

import logging
import math
from abc import ABC, abstractmethod
from datetime import date
from typing import Optional, Sequence

from tally.config import settings
from tally.enums.study import QuotaMode
from tally.models.study import AutoQuota, GoalConfig, Material
from tally.services.study.calendar import days_between

logger = logging.getLogger(__name__)


def _spread(remaining: int, effective_days: float) -> int:
    return math.ceil(remaining / effective_days)


class QuotaStrategy(ABC):
    """One step of the quota resolution chain."""

    name: str = "strategy"

    @abstractmethod
    def resolve(
        self,
        material: Material,
        goal: Optional[GoalConfig],
        today: date,
    ) -> Optional[int]:
        """Return the quota, or None when this strategy does not apply."""


class MaterialDeadlineStrategy(QuotaStrategy):
    """
    Per-material auto quota.

    The material's own deadline takes precedence over the goal's exam date.
    Without either, the material's manual ``daily_quota`` is used. On or
    after the deadline the whole remaining amount is due.
    """

    name = "material_deadline"

    def resolve(self, material, goal, today):
        quota = material.quota
        if not isinstance(quota, AutoQuota):
            return None

        deadline = quota.deadline or (goal.exam_date if goal else None)
        if deadline is None:
            return quota.daily_quota

        days_left = days_between(today, deadline)
        remaining = material.remaining_amount
        if days_left <= 0:
            return remaining

        if quota.use_weekly_target:
            weekly_target = goal.weekly_target_days if goal else settings.FALLBACK_WEEKLY_TARGET_DAYS
            effective_days = max(1.0, days_left * weekly_target / 7)
            return _spread(remaining, effective_days)

        return _spread(remaining, days_left)


class LegacyGoalStrategy(QuotaStrategy):
    """
    Goal-wide auto mode for materials that are still manual.

    Only applies with an exam date in the future and a positive weekly
    target; otherwise resolution continues with the manual value.
    """

    name = "legacy_goal"

    def resolve(self, material, goal, today):
        if goal is None or goal.quota_mode != QuotaMode.AUTO or goal.exam_date is None:
            return None

        days_left = days_between(today, goal.exam_date)
        if days_left <= 0 or goal.weekly_target_days <= 0:
            return None

        effective_days = days_left * goal.weekly_target_days / 7
        if effective_days <= 0:
            return None
        return _spread(material.remaining_amount, effective_days)


class ManualFallbackStrategy(QuotaStrategy):
    """The material's configured daily quota."""

    name = "manual"

    def resolve(self, material, goal, today):
        return material.quota.daily_quota


DEFAULT_STRATEGIES: tuple[QuotaStrategy, ...] = (
    MaterialDeadlineStrategy(),
    LegacyGoalStrategy(),
    ManualFallbackStrategy(),
)


class QuotaCalculator:
    """
    Runs quota strategies in order.

    Args:
        strategies: Resolution chain; the last entry should always
            return a value.
    """

    def __init__(self, strategies: Sequence[QuotaStrategy] = DEFAULT_STRATEGIES):
        self.strategies = tuple(strategies)

    def daily_quota(
        self,
        material: Material,
        goal: Optional[GoalConfig],
        today: date,
    ) -> int:
        for strategy in self.strategies:
            value = strategy.resolve(material, goal, today)
            if value is not None:
                logger.debug(
                    f"Quota for material {material.id} resolved by {strategy.name}: {value}"
                )
                return max(0, int(value))
        return 0


_default_calculator = QuotaCalculator()


def daily_quota(material: Material, goal: Optional[GoalConfig], today: date) -> int:
    """Today's target amount for ``material`` using the default strategy chain."""
    return _default_calculator.daily_quota(material, goal, today)
