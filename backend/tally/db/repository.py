"""
Study Repository

Persistence boundary of the study engine. The tracker loads goal snapshots
(materials, ledger entries, goal configuration) through it and hands back
batches of ledger mutations to commit in one transaction.

``StudyRepository`` is the abstract interface; ``SqlStudyRepository``
implements it on an SQLAlchemy ``AsyncSession``. Any database error is
rolled back and surfaced as ``PersistenceError``.

Progress is never written from a snapshot. Each batch locks the material
rows it touches, shifts ``current_progress`` relative to the stored value
(clamped to ``[0, total_amount]`` in SQL) and reports the stored progress
back, so trackers loaded by concurrent requests do not overwrite each
other.

Deleting a goal cascades explicitly, in this order:
    study_logs → study_materials → memo_images → memos → qualifications
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional, Sequence

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tally.db.models_study import Memo, MemoImage, Qualification, StudyLog, StudyMaterial
from tally.enums.study import MutationKind, QuotaMode, UnitKind
from tally.middleware.error_handling import NotFoundError, PersistenceError
from tally.models.study import AutoQuota, Goal, GoalConfig, ManualQuota, Material, StudyEntry
from tally.services.study.ledger import Mutation, ProgressChange

logger = logging.getLogger(__name__)


class StudyRepository(ABC):
    """Async persistence interface used by the study tracker."""

    # Snapshot loading

    @abstractmethod
    async def load_materials(self, goal_id: str) -> list[Material]:
        """Materials of a goal in display order."""

    @abstractmethod
    async def load_entries(self, material_ids: Iterable[str]) -> list[StudyEntry]:
        """Ledger entries of the given materials."""

    @abstractmethod
    async def load_goal_config(self, goal_id: str) -> GoalConfig:
        """Quota-relevant goal settings. Raises NotFoundError for unknown goals."""

    @abstractmethod
    async def commit(self, mutations: Sequence[Mutation]) -> dict[str, ProgressChange]:
        """
        Apply a batch of ledger mutations atomically.

        Returns:
            Stored progress before and after the batch for every surviving
            material whose progress or definition the batch touched.
        """

    # Goals

    @abstractmethod
    async def get_goal(self, goal_id: str) -> Goal: ...

    @abstractmethod
    async def list_goals(self) -> list[Goal]: ...

    @abstractmethod
    async def add_goal(self, goal: Goal) -> Goal:
        """Persist a goal; the first goal ever added becomes selected."""

    @abstractmethod
    async def update_goal(self, goal: Goal) -> Goal: ...

    @abstractmethod
    async def select_goal(self, goal_id: str) -> Goal:
        """Mark one goal selected and clear the flag on all others."""

    @abstractmethod
    async def delete_goal(self, goal_id: str) -> Optional[Goal]:
        """
        Delete a goal with its materials, entries, memos and memo images.

        Returns:
            The goal selected afterwards, or None when none remain.
        """

    # Materials

    @abstractmethod
    async def add_material(self, material: Material) -> Material: ...

    @abstractmethod
    async def update_material(self, material: Material) -> Material: ...


# =============================================================================
# Row <-> snapshot conversion
# =============================================================================


def _to_goal(row: Qualification) -> Goal:
    return Goal(
        id=row.id,
        name=row.name,
        exam_date=row.exam_date,
        weekly_target_days=row.weekly_target_days,
        quota_mode=QuotaMode(row.quota_mode),
        is_selected=row.is_selected,
        created_at=row.created_at,
    )


def _to_material(row: StudyMaterial) -> Material:
    if row.quota_mode == QuotaMode.AUTO.value:
        quota = AutoQuota(
            daily_quota=row.daily_quota,
            deadline=row.deadline,
            use_weekly_target=row.use_weekly_target,
        )
    else:
        quota = ManualQuota(daily_quota=row.daily_quota)

    return Material(
        id=row.id,
        goal_id=row.qualification_id,
        name=row.name,
        unit=UnitKind(row.unit),
        unit_label=row.unit_label,
        total_amount=row.total_amount,
        current_progress=row.current_progress,
        quota=quota,
        order=row.order,
        created_at=row.created_at,
    )


def _material_definition(material: Material) -> dict:
    """Columns a material update may change; ownership and progress are excluded."""
    quota = material.quota
    auto = isinstance(quota, AutoQuota)
    return {
        "name": material.name,
        "unit": material.unit.value,
        "unit_label": material.unit_label,
        "total_amount": material.total_amount,
        "quota_mode": quota.mode,
        "daily_quota": quota.daily_quota,
        "deadline": quota.deadline if auto else None,
        "use_weekly_target": quota.use_weekly_target if auto else False,
        "order": material.order,
    }


def _to_entry(row: StudyLog) -> StudyEntry:
    return StudyEntry(id=row.id, material_id=row.material_id, day=row.day, amount=row.amount)


# =============================================================================
# SQLAlchemy implementation
# =============================================================================


class SqlStudyRepository(StudyRepository):
    """
    StudyRepository backed by an SQLAlchemy async session.

    Args:
        db: Session used for every operation. Write operations commit it.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to {operation}: {e}")
            raise PersistenceError(f"Failed to {operation}", details={"error": str(e)}) from e

    async def _goal_row(self, goal_id: str) -> Qualification:
        row = await self.db.get(Qualification, goal_id)
        if row is None:
            raise NotFoundError(f"Goal {goal_id} not found")
        return row

    # ------------------------------------------------------------------
    # Snapshot loading
    # ------------------------------------------------------------------

    async def load_materials(self, goal_id: str) -> list[Material]:
        result = await self.db.execute(
            select(StudyMaterial)
            .where(StudyMaterial.qualification_id == goal_id)
            .order_by(StudyMaterial.order, StudyMaterial.created_at)
            .execution_options(populate_existing=True)
        )
        return [_to_material(row) for row in result.scalars()]

    async def load_entries(self, material_ids: Iterable[str]) -> list[StudyEntry]:
        ids = list(material_ids)
        if not ids:
            return []
        result = await self.db.execute(
            select(StudyLog)
            .where(StudyLog.material_id.in_(ids))
            .order_by(StudyLog.day, StudyLog.created_at)
        )
        return [_to_entry(row) for row in result.scalars()]

    async def load_goal_config(self, goal_id: str) -> GoalConfig:
        return _to_goal(await self._goal_row(goal_id)).config

    async def commit(self, mutations: Sequence[Mutation]) -> dict[str, ProgressChange]:
        if not mutations:
            return {}

        touched = {
            m.material_id
            for m in mutations
            if m.kind in (MutationKind.PROGRESS_CHANGED, MutationKind.MATERIAL_UPDATED)
        }
        async with self._transaction("commit study progress"):
            before = await self._read_progress(touched, lock=True)
            for mutation in mutations:
                await self._apply(mutation)
            after = await self._read_progress(touched)

        logger.debug(f"Committed {len(mutations)} ledger mutation(s)")
        return {
            material_id: ProgressChange(before.get(material_id, progress), progress)
            for material_id, progress in after.items()
        }

    async def _read_progress(self, material_ids: set[str], lock: bool = False) -> dict[str, int]:
        """Stored progress per material; ``lock`` holds the rows until commit."""
        if not material_ids:
            return {}
        query = select(StudyMaterial.id, StudyMaterial.current_progress).where(
            StudyMaterial.id.in_(material_ids)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return {material_id: progress for material_id, progress in result}

    async def _write_definition(self, material: Material) -> None:
        await self.db.execute(
            update(StudyMaterial)
            .where(StudyMaterial.id == material.id)
            .values(**_material_definition(material))
            .execution_options(synchronize_session=False)
        )
        # A shrunken total caps the stored progress.
        await self.db.execute(
            update(StudyMaterial)
            .where(
                StudyMaterial.id == material.id,
                StudyMaterial.current_progress > StudyMaterial.total_amount,
            )
            .values(current_progress=StudyMaterial.total_amount)
            .execution_options(synchronize_session=False)
        )

    async def _apply(self, mutation: Mutation) -> None:
        kind = mutation.kind
        if kind == MutationKind.ENTRY_ADDED:
            entry = mutation.entry
            self.db.add(
                StudyLog(
                    id=entry.id,
                    material_id=entry.material_id,
                    day=entry.day,
                    amount=entry.amount,
                )
            )
        elif kind == MutationKind.ENTRY_UPDATED:
            await self.db.execute(
                update(StudyLog)
                .where(StudyLog.id == mutation.entry.id)
                .values(amount=mutation.entry.amount)
            )
        elif kind == MutationKind.ENTRY_DELETED:
            await self.db.execute(delete(StudyLog).where(StudyLog.id == mutation.entry_id))
        elif kind == MutationKind.PROGRESS_CHANGED:
            shifted = StudyMaterial.current_progress + mutation.progress_delta
            await self.db.execute(
                update(StudyMaterial)
                .where(StudyMaterial.id == mutation.material_id)
                .values(
                    current_progress=case(
                        (shifted < 0, 0),
                        (shifted > StudyMaterial.total_amount, StudyMaterial.total_amount),
                        else_=shifted,
                    )
                )
                .execution_options(synchronize_session=False)
            )
        elif kind == MutationKind.MATERIAL_UPDATED:
            await self._write_definition(mutation.material)
        elif kind == MutationKind.MATERIAL_DELETED:
            await self.db.execute(
                delete(StudyLog).where(StudyLog.material_id == mutation.material_id)
            )
            await self.db.execute(
                delete(StudyMaterial).where(StudyMaterial.id == mutation.material_id)
            )

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    async def get_goal(self, goal_id: str) -> Goal:
        return _to_goal(await self._goal_row(goal_id))

    async def list_goals(self) -> list[Goal]:
        result = await self.db.execute(
            select(Qualification).order_by(Qualification.created_at)
        )
        return [_to_goal(row) for row in result.scalars()]

    async def add_goal(self, goal: Goal) -> Goal:
        existing = await self.db.execute(select(Qualification.id).limit(1))
        is_first = existing.first() is None

        async with self._transaction("add goal"):
            self.db.add(
                Qualification(
                    id=goal.id,
                    name=goal.name,
                    exam_date=goal.exam_date,
                    weekly_target_days=goal.weekly_target_days,
                    quota_mode=goal.quota_mode.value,
                    is_selected=goal.is_selected or is_first,
                    created_at=goal.created_at,
                )
            )

        logger.info(f"Added goal {goal.id} ({goal.name})")
        return await self.get_goal(goal.id)

    async def update_goal(self, goal: Goal) -> Goal:
        row = await self._goal_row(goal.id)
        async with self._transaction("update goal"):
            row.name = goal.name
            row.exam_date = goal.exam_date
            row.weekly_target_days = goal.weekly_target_days
            row.quota_mode = goal.quota_mode.value
            updated = _to_goal(row)
        return updated

    async def select_goal(self, goal_id: str) -> Goal:
        row = await self._goal_row(goal_id)
        async with self._transaction("select goal"):
            await self.db.execute(
                update(Qualification)
                .where(Qualification.id != goal_id)
                .values(is_selected=False)
            )
            row.is_selected = True
            selected = _to_goal(row)
        return selected

    async def delete_goal(self, goal_id: str) -> Optional[Goal]:
        row = await self._goal_row(goal_id)
        was_selected = row.is_selected

        material_ids = select(StudyMaterial.id).where(
            StudyMaterial.qualification_id == goal_id
        )
        memo_ids = select(Memo.id).where(Memo.qualification_id == goal_id)

        async with self._transaction("delete goal"):
            await self.db.execute(delete(StudyLog).where(StudyLog.material_id.in_(material_ids)))
            await self.db.execute(
                delete(StudyMaterial).where(StudyMaterial.qualification_id == goal_id)
            )
            await self.db.execute(delete(MemoImage).where(MemoImage.memo_id.in_(memo_ids)))
            await self.db.execute(delete(Memo).where(Memo.qualification_id == goal_id))
            await self.db.delete(row)

        logger.info(f"Deleted goal {goal_id} with its materials, entries and memos")

        remaining = await self.list_goals()
        if not remaining:
            return None
        if was_selected:
            return await self.select_goal(remaining[0].id)
        return next((g for g in remaining if g.is_selected), None)

    # ------------------------------------------------------------------
    # Materials
    # ------------------------------------------------------------------

    async def add_material(self, material: Material) -> Material:
        await self._goal_row(material.goal_id)
        async with self._transaction("add material"):
            self.db.add(
                StudyMaterial(
                    id=material.id,
                    qualification_id=material.goal_id,
                    current_progress=min(material.current_progress, material.total_amount),
                    created_at=material.created_at,
                    **_material_definition(material),
                )
            )
        logger.info(f"Added material {material.id} ({material.name}) to goal {material.goal_id}")
        return material

    async def update_material(self, material: Material) -> Material:
        """
        Rewrite a material's definition.

        The owning goal and progress are not taken from ``material``; stored
        progress is capped at the new ``total_amount``.
        """
        query = (
            select(StudyMaterial)
            .where(StudyMaterial.id == material.id)
            .execution_options(populate_existing=True)
        )
        if (await self.db.execute(query)).scalar_one_or_none() is None:
            raise NotFoundError(f"Material {material.id} not found")

        async with self._transaction("update material"):
            await self._write_definition(material)
            row = (await self.db.execute(query)).scalar_one()
            updated = _to_material(row)
        return updated
