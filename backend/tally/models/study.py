"""
Study Tracking Models (Pydantic)

Domain snapshots and request/response schemas for the study progress
engine: goals, materials with their quota configuration, ledger entries,
and the derived quota/streak/weekly/heatmap views.

ARCHITECTURE NOTE:
    This file contains PYDANTIC models. The corresponding SQLAlchemy
    tables live in tally/db/models_study.py.

    Data flows: Database → SQLAlchemy → Pydantic snapshot → Ledger /
    calculators → Pydantic response → API

Quota configuration is a closed two-variant union discriminated on
``mode``; a material is either ``ManualQuota`` or ``AutoQuota`` and no
other string state can be represented.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Annotated, Literal, Optional, Union
from uuid import uuid4

from pydantic import Field

from tally.enums.study import QuotaMode, UnitKind
from tally.models.base import APIModel, StrictRequest, StrictResponse


def new_id() -> str:
    """Generate an opaque identifier for goals, materials and entries."""
    return str(uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ===========================================
# Quota Configuration
# ===========================================


class ManualQuota(APIModel):
    """Fixed daily quota entered by the user."""

    mode: Literal["manual"] = "manual"
    daily_quota: int = Field(0, ge=0)


class AutoQuota(APIModel):
    """
    Quota derived from remaining work and a deadline.

    ``deadline`` overrides the goal's exam date when set. ``daily_quota``
    is the fallback used when neither resolves.
    """

    mode: Literal["auto"] = "auto"
    daily_quota: int = Field(0, ge=0)
    deadline: Optional[date] = None
    use_weekly_target: bool = False


QuotaConfig = Annotated[Union[ManualQuota, AutoQuota], Field(discriminator="mode")]


# ===========================================
# Goals
# ===========================================


class GoalConfig(APIModel):
    """Goal-level settings consumed by the quota calculator."""

    exam_date: Optional[date] = None
    weekly_target_days: int = Field(4, ge=1, le=7)
    # Legacy goal-wide auto mode, kept for goals created before
    # per-material quota configuration existed.
    quota_mode: QuotaMode = QuotaMode.MANUAL


class Goal(APIModel):
    """A qualification/exam that owns a set of materials."""

    id: str = Field(default_factory=new_id)
    name: str
    exam_date: Optional[date] = None
    weekly_target_days: int = Field(4, ge=1, le=7)
    quota_mode: QuotaMode = QuotaMode.MANUAL
    is_selected: bool = False
    created_at: datetime = Field(default_factory=_utc_now)

    @property
    def config(self) -> GoalConfig:
        return GoalConfig(
            exam_date=self.exam_date,
            weekly_target_days=self.weekly_target_days,
            quota_mode=self.quota_mode,
        )


# ===========================================
# Materials & Ledger Entries
# ===========================================


class Material(APIModel):
    """
    A trackable unit of study content.

    ``current_progress`` is only changed through the progress ledger so it
    stays within ``[0, total_amount]``.
    """

    id: str = Field(default_factory=new_id)
    goal_id: str
    name: str
    unit: UnitKind = UnitKind.COUNT
    unit_label: str = "pages"
    total_amount: int = Field(0, ge=0)
    current_progress: int = Field(0, ge=0)
    quota: QuotaConfig = Field(default_factory=ManualQuota)
    order: int = 0
    created_at: datetime = Field(default_factory=_utc_now)

    @property
    def remaining_amount(self) -> int:
        return max(0, self.total_amount - self.current_progress)

    @property
    def progress_rate(self) -> float:
        if self.total_amount <= 0:
            return 0.0
        return self.current_progress / self.total_amount

    @property
    def progress_percent(self) -> int:
        return int(self.progress_rate * 100)


class StudyEntry(APIModel):
    """One dated amount of work logged against a material."""

    id: str = Field(default_factory=new_id)
    material_id: str
    day: date
    amount: int


# ===========================================
# Calculator Outputs
# ===========================================


class StreakData(StrictResponse):
    """
    Study streak information.

    The current streak is anchored at today, or at yesterday when nothing
    has been logged yet today.
    """

    current_streak: int
    longest_streak: int
    streak_start: Optional[date] = None
    last_study_day: Optional[date] = None
    is_active_today: bool = False
    days_this_week: int = 0
    milestones_reached: list[int] = Field(default_factory=list)
    next_milestone: Optional[int] = None


class WeeklyAttainment(StrictResponse):
    """Study days in the current Monday-start week against the goal's target."""

    week_start: date
    days_studied: int = Field(..., ge=0, le=7)
    target_days: int = Field(..., ge=1, le=7)
    achieved: bool


class HeatmapDay(StrictResponse):
    """Single day bucket of the activity heatmap."""

    day: date
    amount: int = Field(0, description="Summed amount across materials")
    level: int = Field(0, ge=0, le=4, description="Activity level 0-4 for coloring")


class HeatmapResponse(StrictResponse):
    """
    Activity heatmap over a trailing window of months.

    ``weeks`` is the Monday-aligned calendar grid (7 slots per week, None
    for slots after today) used to lay out the cells.
    """

    start: date
    end: date
    months: int
    days: list[HeatmapDay] = Field(default_factory=list)
    weeks: list[list[Optional[date]]] = Field(default_factory=list)
    total_study_days: int = 0
    total_amount: int = 0
    max_daily_amount: int = 0


class MaterialQuotaView(StrictResponse):
    """Per-material row of the home dashboard."""

    material_id: str
    name: str
    unit: UnitKind
    unit_label: str
    daily_quota: int
    today_amount: int
    quota_met: bool
    current_progress: int
    total_amount: int
    remaining_amount: int
    progress_percent: int


class DashboardResponse(StrictResponse):
    """Everything the home screen shows for the selected goal."""

    goal_id: str
    goal_name: str
    today: date
    days_until_exam: Optional[int] = None
    materials: list[MaterialQuotaView] = Field(default_factory=list)
    streak: StreakData
    weekly: WeeklyAttainment


# ===========================================
# Requests / Responses
# ===========================================


class RecordProgressRequest(StrictRequest):
    """Request to log progress on a material (day defaults to today)."""

    amount: int = Field(..., gt=0)
    day: Optional[date] = None


class RecordProgressResponse(StrictResponse):
    """Outcome of a progress recording, including the clamped amount."""

    material_id: str
    entry_id: str
    requested_amount: int
    applied_amount: int
    current_progress: int
    total_amount: int


class AdjustEntryRequest(StrictRequest):
    """Signed correction applied to an existing ledger entry."""

    delta: int


class AdjustEntryResponse(StrictResponse):
    """Result of an entry correction; ``entry`` is None when it was deleted."""

    entry: Optional[StudyEntry] = None
    deleted: bool
    current_progress: int


class TodayAmountResponse(StrictResponse):
    material_id: str
    day: date
    amount: int


class CreateGoalRequest(StrictRequest):
    """Request to create a goal."""

    name: str = Field(..., min_length=1, max_length=200)
    exam_date: Optional[date] = None
    weekly_target_days: int = Field(4, ge=1, le=7)
    quota_mode: QuotaMode = QuotaMode.MANUAL


class CreateMaterialRequest(StrictRequest):
    """Request to add a material to a goal."""

    name: str = Field(..., min_length=1, max_length=200)
    unit: UnitKind = UnitKind.COUNT
    unit_label: str = "pages"
    total_amount: int = Field(..., ge=0)
    quota: QuotaConfig = Field(default_factory=ManualQuota)
    order: int = 0


class GoalDeletedResponse(StrictResponse):
    """Result of a goal deletion; ``selected_goal`` is the goal now selected."""

    deleted_goal_id: str
    selected_goal: Optional[Goal] = None


class UpdateGoalRequest(StrictRequest):
    """
    Partial edit of a goal.

    Omitted fields are left unchanged. ``exam_date`` may be sent as null to
    clear the exam date; null for any other field means "unchanged".
    """

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    exam_date: Optional[date] = None
    weekly_target_days: Optional[int] = Field(None, ge=1, le=7)
    quota_mode: Optional[QuotaMode] = None

    def changes(self) -> dict:
        sent = self.model_dump(exclude_unset=True)
        return {k: v for k, v in sent.items() if v is not None or k == "exam_date"}


class UpdateMaterialRequest(StrictRequest):
    """
    Partial edit of a material; omitted fields are left unchanged.

    ``quota`` replaces the whole quota configuration. Shrinking
    ``total_amount`` below the current progress caps the progress.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    unit: Optional[UnitKind] = None
    unit_label: Optional[str] = None
    total_amount: Optional[int] = Field(None, ge=0)
    quota: Optional[QuotaConfig] = None
    order: Optional[int] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)
