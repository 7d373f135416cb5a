"""
Study Tracker Service

Facade the dashboard and API talk to. Holds one goal's snapshot (goal,
materials and the progress ledger), answers quota/streak/weekly/heatmap
queries from it, and routes every write through the ledger's unit of work:

    1. Mutate the in-memory ledger (entry + progress as one logical change)
    2. Commit the pending mutations through the repository
    3. Take the stored progress the commit reports back into the snapshot,
       or on failure roll the ledger back to its last committed state

Mutating operations are serialised with an asyncio lock, so a single
tracker instance is a single writer. Trackers built for concurrent requests
are kept consistent by the repository, which applies progress relative to
the locked row. Read operations work on the current snapshot and do not
take the lock.

Usage:
    from tally.services.study.tracker import StudyTrackerService

    tracker = await StudyTrackerService.load(repository, goal_id)
    applied = await tracker.record_progress(material_id, 30)
    dashboard = tracker.dashboard()
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, Optional

from tally.config import settings
from tally.db.repository import StudyRepository
from tally.middleware.error_handling import PersistenceError
from tally.models.study import (
    AdjustEntryResponse,
    DashboardResponse,
    Goal,
    HeatmapResponse,
    Material,
    MaterialQuotaView,
    RecordProgressResponse,
)
from tally.services.study import calendar
from tally.services.study.heatmap import build_heatmap_response, heatmap
from tally.services.study.ledger import ProgressChange, ProgressLedger
from tally.services.study.quota import QuotaCalculator
from tally.services.study.streaks import build_streak_data, current_streak
from tally.services.study.weekly import weekly_attainment, weekly_study_days

logger = logging.getLogger(__name__)


class StudyTrackerService:
    """
    Progress tracking for one goal.

    Args:
        repository: Persistence collaborator.
        goal: Goal snapshot.
        ledger: Ledger over the goal's materials and entries.
        quota_calculator: Quota strategy chain; the default chain when None.
    """

    def __init__(
        self,
        repository: StudyRepository,
        goal: Goal,
        ledger: ProgressLedger,
        quota_calculator: Optional[QuotaCalculator] = None,
    ):
        self.repository = repository
        self.goal = goal
        self.ledger = ledger
        self.quota_calculator = quota_calculator or QuotaCalculator()
        self._lock = asyncio.Lock()

    @classmethod
    async def load(
        cls,
        repository: StudyRepository,
        goal_id: str,
        quota_calculator: Optional[QuotaCalculator] = None,
    ) -> "StudyTrackerService":
        """
        Load a goal snapshot and build a tracker over it.

        Raises:
            NotFoundError: The goal does not exist.
        """
        goal = await repository.get_goal(goal_id)
        materials = await repository.load_materials(goal_id)
        entries = await repository.load_entries([m.id for m in materials])
        logger.debug(
            f"Loaded goal {goal_id}: {len(materials)} material(s), {len(entries)} entr(ies)"
        )
        return cls(repository, goal, ProgressLedger(materials, entries), quota_calculator)

    @asynccontextmanager
    async def _unit_of_work(self, operation: str) -> AsyncIterator[dict[str, ProgressChange]]:
        """
        Run ledger mutations as one committed batch.

        Yields an empty mapping that is filled with the stored progress per
        material once the batch has been committed.
        """
        persisted: dict[str, ProgressChange] = {}
        async with self._lock:
            try:
                yield persisted
                persisted.update(await self.repository.commit(self.ledger.pending_mutations()))
            except PersistenceError:
                logger.error(f"{operation} failed to persist; rolling back ledger")
                self.ledger.rollback()
                raise
            except Exception:
                self.ledger.rollback()
                raise
            self.ledger.mark_committed(persisted)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def daily_quota(self, material_id: str, today: Optional[date] = None) -> int:
        """Today's target amount for one material."""
        material = self.ledger.material(material_id)
        return self.quota_calculator.daily_quota(
            material, self.goal.config, today or calendar.today()
        )

    def current_streak(self, today: Optional[date] = None) -> int:
        return current_streak(self.ledger.distinct_study_days(), today or calendar.today())

    def weekly_study_days(self, today: Optional[date] = None) -> int:
        return weekly_study_days(self.ledger.distinct_study_days(), today or calendar.today())

    def heatmap(self, months: Optional[int] = None, today: Optional[date] = None) -> dict[date, int]:
        return heatmap(
            self.ledger.entries,
            settings.HEATMAP_DEFAULT_MONTHS if months is None else months,
            today or calendar.today(),
        )

    def today_amount(self, material_id: str, today: Optional[date] = None) -> int:
        """Amount logged on ``today`` for one material."""
        return self.ledger.amount_on_day(material_id, today or calendar.today())

    def dashboard(self, today: Optional[date] = None) -> DashboardResponse:
        """
        Home screen summary for the goal.

        Includes each material's quota, today's amount and overall progress,
        the streak, this week's attainment and the exam countdown.
        """
        today = today or calendar.today()
        study_days = self.ledger.distinct_study_days()

        views = []
        for material in self.ledger.materials:
            quota = self.quota_calculator.daily_quota(material, self.goal.config, today)
            done = self.ledger.amount_on_day(material.id, today)
            views.append(
                MaterialQuotaView(
                    material_id=material.id,
                    name=material.name,
                    unit=material.unit,
                    unit_label=material.unit_label,
                    daily_quota=quota,
                    today_amount=done,
                    quota_met=done >= quota,
                    current_progress=material.current_progress,
                    total_amount=material.total_amount,
                    remaining_amount=material.remaining_amount,
                    progress_percent=material.progress_percent,
                )
            )

        return DashboardResponse(
            goal_id=self.goal.id,
            goal_name=self.goal.name,
            today=today,
            days_until_exam=calendar.days_until(self.goal.exam_date, today),
            materials=views,
            streak=build_streak_data(study_days, today),
            weekly=weekly_attainment(study_days, today, self.goal.weekly_target_days),
        )

    def heatmap_response(
        self,
        months: Optional[int] = None,
        today: Optional[date] = None,
    ) -> HeatmapResponse:
        return build_heatmap_response(
            self.ledger.entries,
            settings.HEATMAP_DEFAULT_MONTHS if months is None else months,
            today or calendar.today(),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def record(
        self,
        material_id: str,
        amount: int,
        day: Optional[date] = None,
    ) -> RecordProgressResponse:
        """
        Log study on a material and advance its progress.

        The entry keeps the full requested amount while progress is capped
        at the material's total. ``applied_amount`` and ``current_progress``
        are the stored values, which include writes made through other
        trackers since this one was loaded.

        Raises:
            NotFoundError: Unknown material.
            PersistenceError: Commit failed; nothing was changed.
        """
        day = calendar.start_of_day(day) if day else calendar.today()
        async with self._unit_of_work("record progress") as persisted:
            entry, applied = self.ledger.record(material_id, day, amount)

        material = self.ledger.material(material_id)
        if material_id in persisted:
            applied = persisted[material_id].applied
        logger.info(
            f"Recorded {amount} on {day} for material {material_id} (applied {applied})"
        )
        return RecordProgressResponse(
            material_id=material_id,
            entry_id=entry.id,
            requested_amount=amount,
            applied_amount=applied,
            current_progress=material.current_progress,
            total_amount=material.total_amount,
        )

    async def record_progress(
        self,
        material_id: str,
        amount: int,
        day: Optional[date] = None,
    ) -> int:
        """Log study on a material; returns the amount applied to progress."""
        result = await self.record(material_id, amount, day)
        return result.applied_amount

    async def adjust_entry(self, entry_id: str, delta: int) -> AdjustEntryResponse:
        """Correct a logged amount; the entry is deleted when it drops to 0 or below."""
        async with self._unit_of_work("adjust entry"):
            material_id = self.ledger.entry(entry_id).material_id
            updated = self.ledger.adjust_entry(entry_id, delta)

        return AdjustEntryResponse(
            entry=updated.model_copy() if updated else None,
            deleted=updated is None,
            current_progress=self.ledger.material(material_id).current_progress,
        )

    async def remove_for_day(self, material_id: str, day: date, delta: int) -> int:
        """Correct the amount logged on one day; returns the day's new total."""
        async with self._unit_of_work("correct day"):
            remaining = self.ledger.remove_for_day(material_id, day, delta)
        return remaining

    async def delete_entry(self, entry_id: str) -> None:
        async with self._unit_of_work("delete entry"):
            self.ledger.delete_entry(entry_id)

    async def delete_material(self, material_id: str) -> None:
        """Delete a material and all of its ledger entries."""
        async with self._unit_of_work("delete material"):
            self.ledger.delete_material(material_id)

    async def add_material(self, material: Material) -> Material:
        """Persist a new material for this goal, starting from zero progress."""
        material = material.model_copy(update={"goal_id": self.goal.id, "current_progress": 0})
        async with self._lock:
            saved = await self.repository.add_material(material)
            self.ledger.track_material(saved)
        return saved

    async def update_material(self, material_id: str, **changes: Any) -> Material:
        """
        Edit a material's name, unit, total, quota configuration or order.

        Progress is kept, capped at the new total when the material shrinks.

        Raises:
            NotFoundError: Unknown material.
            PersistenceError: Commit failed; nothing was changed.
        """
        current = self.ledger.material(material_id)
        edited = Material.model_validate({**current.model_dump(), **changes, "id": material_id})
        async with self._unit_of_work("update material"):
            self.ledger.update_material(edited)

        logger.info(f"Updated material {material_id}: {sorted(changes)}")
        return self.ledger.material(material_id).model_copy(deep=True)

    async def update_goal(self, **changes: Any) -> Goal:
        """
        Edit the goal's name, exam date, weekly target or legacy quota mode.

        Quotas computed afterwards use the new settings.
        """
        edited = Goal.model_validate({**self.goal.model_dump(), **changes, "id": self.goal.id})
        async with self._lock:
            self.goal = await self.repository.update_goal(edited)

        logger.info(f"Updated goal {self.goal.id}: {sorted(changes)}")
        return self.goal
