"""
Unit Tests for the Progress Ledger.

Tests for:
- Recording entries and the clamped progress update
- Entry corrections (adjust, per-day removal, deletion)
- Explicit material cascade
- Unit of work: pending mutations, commit and rollback
"""

from datetime import date, timedelta

import pytest

from tally.enums.study import MutationKind
from tally.middleware.error_handling import NotFoundError
from tally.models.study import Material, StudyEntry
from tally.services.study.ledger import ProgressChange, ProgressLedger


@pytest.fixture
def ledger(material: Material) -> ProgressLedger:
    return ProgressLedger([material])


def _kinds(ledger: ProgressLedger) -> list[MutationKind]:
    return [m.kind for m in ledger.pending_mutations()]


class TestRecordEntry:
    """Tests for appending entries."""

    def test_record_advances_progress(self, ledger, today):
        applied = ledger.record_entry("mat-1", today, 30)

        assert applied == 30
        assert ledger.material("mat-1").current_progress == 30
        assert ledger.amount_on_day("mat-1", today) == 30

    def test_over_recording_is_clamped_to_remaining(self, ledger, today):
        """Progress stops at the total; the entry keeps the requested amount."""
        ledger.record_entry("mat-1", today, 90)
        applied = ledger.record_entry("mat-1", today, 30)

        assert applied == 10
        assert ledger.material("mat-1").current_progress == 100
        assert ledger.amount_on_day("mat-1", today) == 120

    def test_recording_on_completed_material_applies_nothing(self, ledger, today):
        ledger.record_entry("mat-1", today, 100)

        assert ledger.record_entry("mat-1", today, 5) == 0
        assert ledger.material("mat-1").current_progress == 100

    def test_progress_stays_within_bounds(self, ledger, today):
        for offset, amount in enumerate([40, 35, 50, 1, 7]):
            ledger.record_entry("mat-1", today - timedelta(days=offset), amount)
            progress = ledger.material("mat-1").current_progress
            assert 0 <= progress <= 100

    def test_same_day_entries_are_summed(self, ledger, today):
        ledger.record_entry("mat-1", today, 3)
        ledger.record_entry("mat-1", today, 4)

        assert ledger.amount_on_day("mat-1", today) == 7
        assert ledger.amount_on_day("mat-1", today - timedelta(days=1)) == 0

    def test_unknown_material_raises(self, ledger, today):
        with pytest.raises(NotFoundError):
            ledger.record_entry("missing", today, 5)

        assert ledger.pending_mutations() == []

    def test_record_emits_entry_and_progress_mutations(self, ledger, today):
        entry, _ = ledger.record("mat-1", today, 10)

        mutations = ledger.pending_mutations()
        assert [m.kind for m in mutations] == [
            MutationKind.ENTRY_ADDED,
            MutationKind.PROGRESS_CHANGED,
        ]
        assert mutations[0].entry.id == entry.id
        assert mutations[1].progress_delta == 10


class TestQueries:
    """Tests for read-only ledger queries."""

    def test_distinct_study_days(self, material, today):
        other = material.model_copy(update={"id": "mat-2", "name": "Workbook"})
        ledger = ProgressLedger(
            [material, other],
            [
                StudyEntry(material_id="mat-1", day=today, amount=3),
                StudyEntry(material_id="mat-2", day=today, amount=2),
                StudyEntry(material_id="mat-2", day=today - timedelta(days=2), amount=1),
            ],
        )

        assert ledger.distinct_study_days() == {today, today - timedelta(days=2)}
        assert ledger.distinct_study_days(["mat-1"]) == {today}

    def test_materials_in_display_order(self, material):
        first = material.model_copy(update={"id": "a", "order": 0})
        second = material.model_copy(update={"id": "b", "order": 1})
        ledger = ProgressLedger([second, first])

        assert [m.id for m in ledger.materials] == ["a", "b"]

    def test_entries_for_unknown_material_raises(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.entries_for("missing")


class TestCorrections:
    """Tests for adjusting, removing and deleting entries."""

    def test_adjust_entry_moves_entry_and_progress(self, ledger, today):
        entry, _ = ledger.record("mat-1", today, 10)

        updated = ledger.adjust_entry(entry.id, -4)

        assert updated.amount == 6
        assert ledger.material("mat-1").current_progress == 6

    def test_adjust_to_zero_deletes_entry(self, ledger, today):
        entry, _ = ledger.record("mat-1", today, 10)

        assert ledger.adjust_entry(entry.id, -10) is None
        assert ledger.entries_for("mat-1") == []
        assert ledger.material("mat-1").current_progress == 0

    def test_adjust_below_zero_floors_progress(self, ledger, today):
        entry, _ = ledger.record("mat-1", today, 10)

        ledger.adjust_entry(entry.id, -25)

        assert ledger.material("mat-1").current_progress == 0

    def test_adjust_unknown_entry_raises(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.adjust_entry("missing", 1)

    def test_remove_for_day_consumes_newest_first(self, ledger, today):
        first, _ = ledger.record("mat-1", today, 5)
        ledger.record("mat-1", today, 3)

        remaining = ledger.remove_for_day("mat-1", today, -4)

        assert remaining == 4
        assert [e.id for e in ledger.entries_for("mat-1")] == [first.id]
        assert ledger.entry(first.id).amount == 4
        assert ledger.material("mat-1").current_progress == 4

    def test_remove_for_day_positive_delta_grows_latest_entry(self, ledger, today):
        ledger.record("mat-1", today, 5)

        assert ledger.remove_for_day("mat-1", today, 2) == 7
        assert ledger.material("mat-1").current_progress == 7

    def test_remove_for_day_without_entries_raises(self, ledger, today):
        with pytest.raises(NotFoundError):
            ledger.remove_for_day("mat-1", today, -1)

    def test_delete_entry_takes_amount_back(self, ledger, today):
        entry, _ = ledger.record("mat-1", today, 12)
        ledger.record("mat-1", today, 8)

        ledger.delete_entry(entry.id)

        assert ledger.amount_on_day("mat-1", today) == 8
        assert ledger.material("mat-1").current_progress == 8

    def test_delete_material_cascades_entries(self, material, today):
        other = material.model_copy(update={"id": "mat-2"})
        ledger = ProgressLedger([material, other])
        ledger.record("mat-1", today, 3)
        ledger.record("mat-1", today - timedelta(days=1), 3)
        ledger.record("mat-2", today, 1)
        ledger.mark_committed()

        ledger.delete_material("mat-1")

        assert [m.id for m in ledger.materials] == ["mat-2"]
        assert all(e.material_id == "mat-2" for e in ledger.entries)
        assert _kinds(ledger) == [
            MutationKind.ENTRY_DELETED,
            MutationKind.ENTRY_DELETED,
            MutationKind.MATERIAL_DELETED,
        ]
        with pytest.raises(NotFoundError):
            ledger.material("mat-1")


class TestUnitOfWork:
    """Tests for checkpoint, commit and rollback."""

    def test_mark_committed_clears_pending(self, ledger, today):
        ledger.record_entry("mat-1", today, 10)
        ledger.mark_committed()

        assert ledger.pending_mutations() == []
        assert ledger.material("mat-1").current_progress == 10

    def test_rollback_restores_last_committed_state(self, ledger, today):
        ledger.record_entry("mat-1", today, 10)
        ledger.mark_committed()

        entry, _ = ledger.record("mat-1", today, 20)
        ledger.delete_material("mat-1")
        ledger.rollback()

        assert ledger.pending_mutations() == []
        assert ledger.material("mat-1").current_progress == 10
        assert ledger.amount_on_day("mat-1", today) == 10
        with pytest.raises(NotFoundError):
            ledger.entry(entry.id)

    def test_rollback_with_nothing_pending_is_noop(self, ledger, today):
        ledger.record_entry("mat-1", today, 10)
        ledger.mark_committed()

        ledger.rollback()

        assert ledger.material("mat-1").current_progress == 10

    def test_pending_mutations_is_a_copy(self, ledger, today):
        ledger.record_entry("mat-1", today, 1)
        ledger.pending_mutations().clear()

        assert len(ledger.pending_mutations()) == 2


class TestUpdateMaterial:
    """Tests for editing a material's definition."""

    def test_shrinking_total_caps_progress(self, ledger, today):
        ledger.record_entry("mat-1", today, 80)
        ledger.mark_committed()

        updated = ledger.update_material(
            ledger.material("mat-1").model_copy(update={"total_amount": 50})
        )

        assert updated.total_amount == 50
        assert updated.current_progress == 50
        assert _kinds(ledger) == [MutationKind.MATERIAL_UPDATED]

    def test_recording_after_shrink_never_applies_negative(self, ledger, today):
        ledger.record_entry("mat-1", today, 80)
        ledger.update_material(ledger.material("mat-1").model_copy(update={"total_amount": 50}))

        applied = ledger.record_entry("mat-1", today, 5)

        assert applied == 0
        assert ledger.material("mat-1").current_progress == 50

    def test_growing_total_keeps_progress(self, ledger, today):
        ledger.record_entry("mat-1", today, 80)

        updated = ledger.update_material(
            ledger.material("mat-1").model_copy(update={"total_amount": 200, "name": "Textbook 2e"})
        )

        assert updated.current_progress == 80
        assert updated.name == "Textbook 2e"

    def test_ownership_and_progress_come_from_snapshot(self, ledger, today):
        ledger.record_entry("mat-1", today, 20)
        edit = ledger.material("mat-1").model_copy(
            update={"goal_id": "other-goal", "current_progress": 99}
        )

        updated = ledger.update_material(edit)

        assert updated.goal_id == "goal-1"
        assert updated.current_progress == 20

    def test_rollback_restores_definition(self, ledger):
        ledger.update_material(ledger.material("mat-1").model_copy(update={"total_amount": 10}))

        ledger.rollback()

        assert ledger.material("mat-1").total_amount == 100

    def test_unknown_material_raises(self, ledger, material):
        with pytest.raises(NotFoundError):
            ledger.update_material(material.model_copy(update={"id": "missing"}))


class TestStoredProgress:
    """Tests for taking committed progress back into the snapshot."""

    def test_progress_mutation_carries_requested_shift(self, ledger, today):
        ledger.record_entry("mat-1", today, 100)
        ledger.mark_committed()

        ledger.record_entry("mat-1", today, 5)

        progress = [m for m in ledger.pending_mutations() if m.kind == MutationKind.PROGRESS_CHANGED]
        assert [m.progress_delta for m in progress] == [5]

    def test_mark_committed_takes_stored_progress(self, ledger, today):
        ledger.record_entry("mat-1", today, 10)

        ledger.mark_committed({"mat-1": ProgressChange(before=20, after=30)})

        assert ledger.material("mat-1").current_progress == 30
        ledger.rollback()
        assert ledger.material("mat-1").current_progress == 30

    def test_stored_progress_for_deleted_material_is_ignored(self, ledger):
        ledger.delete_material("mat-1")

        ledger.mark_committed({"mat-1": ProgressChange(before=0, after=0)})

        assert ledger.materials == []
