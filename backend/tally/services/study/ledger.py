"""
Progress Ledger

In-memory aggregate over one goal's materials and their study entries.
It is the single source of truth the quota, streak, weekly and heatmap
calculators read from, and the only place ``Material.current_progress``
is changed.

Every mutation is applied to the in-memory state immediately and recorded
as a ``Mutation``. The owner commits the pending batch through the
persistence layer and then calls ``mark_committed()``, or calls
``rollback()`` to restore the last committed state when the commit fails.

Progress mutations carry the signed shift rather than an absolute value, so
the persistence layer can apply them to the stored row and report back the
progress it actually holds. ``mark_committed()`` takes that report and
brings the snapshot in line with it.

Usage:
    ledger = ProgressLedger(materials, entries)

    applied = ledger.record_entry(material.id, today, 30)
    try:
        changes = await repository.commit(ledger.pending_mutations())
    except PersistenceError:
        ledger.rollback()
        raise
    ledger.mark_committed(changes)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional

from tally.enums.study import MutationKind
from tally.middleware.error_handling import NotFoundError
from tally.models.study import Material, StudyEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Mutation:
    """
    One ledger change to be persisted.

    Attributes:
        kind: What changed.
        material_id: Material the change belongs to.
        entry: Entry state after the change (ENTRY_ADDED / ENTRY_UPDATED).
        entry_id: Removed entry (ENTRY_DELETED).
        progress_delta: Signed shift of progress, applied within
            ``[0, total_amount]`` of the stored row (PROGRESS_CHANGED).
        material: New material definition (MATERIAL_UPDATED).
    """

    kind: MutationKind
    material_id: str
    entry: Optional[StudyEntry] = None
    entry_id: Optional[str] = None
    progress_delta: int = 0
    material: Optional[Material] = None


@dataclass(frozen=True)
class ProgressChange:
    """Stored progress of one material before and after a committed batch."""

    before: int
    after: int

    @property
    def applied(self) -> int:
        return self.after - self.before


class ProgressLedger:
    """Append-mostly collection of study entries keyed by material."""

    def __init__(
        self,
        materials: Iterable[Material],
        entries: Iterable[StudyEntry] = (),
    ):
        self._materials: dict[str, Material] = {m.id: m for m in materials}
        self._entries: dict[str, StudyEntry] = {e.id: e for e in entries}
        self._pending: list[Mutation] = []
        self._saved_materials: dict[str, Material] = {}
        self._saved_entries: dict[str, StudyEntry] = {}
        self.checkpoint()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def materials(self) -> list[Material]:
        """Materials in display order."""
        return sorted(self._materials.values(), key=lambda m: (m.order, m.created_at))

    @property
    def entries(self) -> list[StudyEntry]:
        return list(self._entries.values())

    def material(self, material_id: str) -> Material:
        try:
            return self._materials[material_id]
        except KeyError:
            raise NotFoundError(f"Material {material_id} not found") from None

    def entry(self, entry_id: str) -> StudyEntry:
        try:
            return self._entries[entry_id]
        except KeyError:
            raise NotFoundError(f"Study entry {entry_id} not found") from None

    def entries_for(self, material_id: str) -> list[StudyEntry]:
        """All entries of one material, oldest day first."""
        self.material(material_id)
        return sorted(
            (e for e in self._entries.values() if e.material_id == material_id),
            key=lambda e: e.day,
        )

    def amount_on_day(self, material_id: str, day: date) -> int:
        """Sum of a material's entries logged on ``day`` (0 if none)."""
        return sum(e.amount for e in self.entries_for(material_id) if e.day == day)

    def distinct_study_days(self, material_ids: Optional[Iterable[str]] = None) -> set[date]:
        """
        Days on which at least one of the materials has a non-zero entry.

        Args:
            material_ids: Restrict to these materials; all materials when None.
        """
        wanted = set(self._materials) if material_ids is None else set(material_ids)
        return {
            e.day for e in self._entries.values() if e.material_id in wanted and e.amount != 0
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def track_material(self, material: Material) -> None:
        """Add a newly persisted material to the snapshot."""
        self._materials[material.id] = material
        self._saved_materials[material.id] = material.model_copy(deep=True)

    def record(self, material_id: str, day: date, amount: int) -> tuple[StudyEntry, int]:
        """
        Append an entry and advance the material's progress.

        The entry keeps the requested amount; progress only advances up to
        ``total_amount``.

        Returns:
            The new entry and the amount actually applied to progress.
        """
        material = self.material(material_id)
        entry = StudyEntry(material_id=material_id, day=day, amount=amount)
        self._entries[entry.id] = entry
        self._pending.append(
            Mutation(MutationKind.ENTRY_ADDED, material_id, entry=entry.model_copy())
        )

        applied = self._shift_progress(material, amount)
        logger.debug(
            f"Recorded {amount} on {day} for material {material_id} "
            f"(applied {applied}, progress {material.current_progress}/{material.total_amount})"
        )
        return entry, applied

    def record_entry(self, material_id: str, day: date, amount: int) -> int:
        """Append an entry; returns the clamped amount applied to progress."""
        _, applied = self.record(material_id, day, amount)
        return applied

    def adjust_entry(self, entry_id: str, delta: int) -> Optional[StudyEntry]:
        """
        Correct an entry's amount by a signed delta.

        An entry whose amount drops to 0 or below is deleted. The material's
        progress moves by the same delta, kept within ``[0, total_amount]``.

        Returns:
            The updated entry, or None when it was deleted.
        """
        entry = self.entry(entry_id)
        material = self.material(entry.material_id)
        updated = self._apply_to_entry(entry, delta)
        self._shift_progress(material, delta)
        return updated

    def remove_for_day(self, material_id: str, day: date, delta: int) -> int:
        """
        Correct the amount a material has logged on one day.

        A negative delta is taken out of that day's entries, newest first,
        deleting every entry it empties. A positive delta is added to the
        newest entry of the day.

        Returns:
            The material's remaining amount logged on ``day``.

        Raises:
            NotFoundError: The material has no entry on ``day``.
        """
        material = self.material(material_id)
        day_entries = [e for e in self.entries_for(material_id) if e.day == day]
        if not day_entries:
            raise NotFoundError(f"No entry on {day} for material {material_id}")

        if delta >= 0:
            self._apply_to_entry(day_entries[-1], delta)
        else:
            outstanding = -delta
            for entry in reversed(day_entries):
                if outstanding <= 0:
                    break
                taken = min(entry.amount, outstanding)
                self._apply_to_entry(entry, -taken)
                outstanding -= taken

        self._shift_progress(material, delta)
        return self.amount_on_day(material_id, day)

    def delete_entry(self, entry_id: str) -> None:
        """Remove an entry and take its amount back out of progress."""
        entry = self.entry(entry_id)
        material = self.material(entry.material_id)
        self._drop_entry(entry)
        self._shift_progress(material, -entry.amount)

    def update_material(self, material: Material) -> Material:
        """
        Replace a material's definition (name, unit, total, quota, order).

        Ownership, creation time and progress are kept from the current
        snapshot; progress is capped at the new ``total_amount``.
        """
        current = self.material(material.id)
        updated = material.model_copy(
            update={
                "goal_id": current.goal_id,
                "created_at": current.created_at,
                "current_progress": min(current.current_progress, material.total_amount),
            },
            deep=True,
        )
        self._materials[material.id] = updated
        self._pending.append(
            Mutation(
                MutationKind.MATERIAL_UPDATED,
                material.id,
                material=updated.model_copy(deep=True),
            )
        )
        if updated.current_progress != current.current_progress:
            logger.info(
                f"Material {material.id} resized to {updated.total_amount}; "
                f"progress capped from {current.current_progress} to {updated.current_progress}"
            )
        return updated

    def delete_material(self, material_id: str) -> None:
        """Remove a material together with all of its entries."""
        self.material(material_id)
        for entry in self.entries_for(material_id):
            self._drop_entry(entry)
        del self._materials[material_id]
        self._pending.append(Mutation(MutationKind.MATERIAL_DELETED, material_id))
        logger.info(f"Deleted material {material_id} and its study entries")

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def pending_mutations(self) -> list[Mutation]:
        return list(self._pending)

    def checkpoint(self) -> None:
        """Take the current state as the last committed state."""
        self._saved_materials = {k: m.model_copy(deep=True) for k, m in self._materials.items()}
        self._saved_entries = {k: e.model_copy() for k, e in self._entries.items()}
        self._pending = []

    def mark_committed(self, progress: Optional[Mapping[str, ProgressChange]] = None) -> None:
        """
        Accept the pending batch as persisted.

        Args:
            progress: Stored progress reported by the commit. Other writers may
                have moved it since this snapshot was loaded, so it replaces the
                snapshot's value.
        """
        for material_id, change in (progress or {}).items():
            material = self._materials.get(material_id)
            if material is not None:
                material.current_progress = change.after
        self.checkpoint()

    def rollback(self) -> None:
        """Discard uncommitted changes and restore the last committed state."""
        if self._pending:
            logger.warning(f"Rolling back {len(self._pending)} uncommitted ledger change(s)")
        self._materials = {k: m.model_copy(deep=True) for k, m in self._saved_materials.items()}
        self._entries = {k: e.model_copy() for k, e in self._saved_entries.items()}
        self._pending = []

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply_to_entry(self, entry: StudyEntry, delta: int) -> Optional[StudyEntry]:
        new_amount = entry.amount + delta
        if new_amount <= 0:
            self._drop_entry(entry)
            return None
        entry.amount = new_amount
        self._pending.append(
            Mutation(MutationKind.ENTRY_UPDATED, entry.material_id, entry=entry.model_copy())
        )
        return entry

    def _drop_entry(self, entry: StudyEntry) -> None:
        del self._entries[entry.id]
        self._pending.append(
            Mutation(MutationKind.ENTRY_DELETED, entry.material_id, entry_id=entry.id)
        )

    def _shift_progress(self, material: Material, delta: int) -> int:
        """Move progress by ``delta`` within ``[0, total_amount]``; returns the actual change."""
        before = material.current_progress
        after = min(max(before + delta, 0), material.total_amount)
        material.current_progress = after
        if delta:
            self._pending.append(
                Mutation(MutationKind.PROGRESS_CHANGED, material.id, progress_delta=delta)
            )
        return after - before
