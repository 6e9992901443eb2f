"""
Conflict detector: overlapping active assignments for one assignee.
"""
import uuid
from datetime import date

from siteworks.services import assignments
from siteworks.services.conflicts import Candidate, check_conflicts, find_conflicts, has_conflicts


class TestFindConflicts:
    def test_nested_interval_reports_single_overlap(self, db, assign):
        """Site A all January; Site B for 15th-20th overlaps exactly 15th-20th."""
        worker_id = uuid.uuid4()
        site_a = uuid.uuid4()
        existing = assign(worker_id, site_a, date(2025, 1, 1), date(2025, 1, 31))

        conflicts = find_conflicts(db, Candidate("worker", worker_id, date(2025, 1, 15), date(2025, 1, 20)))

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.conflicting_assignment_id == existing.id
        assert conflict.entity_type == "site"
        assert conflict.entity_id == site_a
        assert conflict.overlap_start == date(2025, 1, 15)
        assert conflict.overlap_end == date(2025, 1, 20)
        assert str(site_a) in conflict.message

    def test_no_conflict_for_other_assignee(self, db, assign):
        assign(uuid.uuid4(), start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))
        assert not has_conflicts(db, Candidate("worker", uuid.uuid4(), date(2025, 1, 10), date(2025, 1, 12)))

    def test_assignee_type_is_part_of_identity(self, db, assign):
        shared_id = uuid.uuid4()
        assign(shared_id, start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))
        assert not has_conflicts(db, Candidate("material", shared_id, date(2025, 1, 10), date(2025, 1, 12)))

    def test_open_ended_existing_overlaps_later_candidate(self, db, assign):
        worker_id = uuid.uuid4()
        assign(worker_id, start_date=date(2025, 1, 1))

        conflicts = find_conflicts(db, Candidate("worker", worker_id, date(2026, 6, 1), date(2026, 6, 5)))

        assert len(conflicts) == 1
        assert conflicts[0].overlap_start == date(2026, 6, 1)
        assert conflicts[0].overlap_end == date(2026, 6, 5)

    def test_open_ended_candidate_window_stays_open(self, db, assign):
        worker_id = uuid.uuid4()
        assign(worker_id, start_date=date(2025, 1, 1))

        conflicts = find_conflicts(db, Candidate("worker", worker_id, date(2025, 3, 1)))

        assert conflicts[0].overlap_end is None
        assert "open-ended" in conflicts[0].message

    def test_inactive_assignments_are_ignored(self, db, assign):
        worker_id = uuid.uuid4()
        done = assign(worker_id, start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))
        cancelled = assign(worker_id, start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))
        assignments.complete(db, done.id)
        assignments.cancel(db, cancelled.id, "site closed")

        assert not has_conflicts(db, Candidate("worker", worker_id, date(2025, 1, 15), date(2025, 1, 20)))

    def test_own_id_is_excluded(self, db, assign):
        worker_id = uuid.uuid4()
        existing = assign(worker_id, start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))
        assert not has_conflicts(
            db, Candidate("worker", worker_id, date(2025, 1, 1), date(2025, 2, 28), id=existing.id)
        )


class TestCheckConflicts:
    def test_detected_conflicts_fire_notification(self, db, assign, notifications):
        worker_id = uuid.uuid4()
        assign(worker_id, start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))

        conflicts = check_conflicts(db, Candidate("worker", worker_id, date(2025, 1, 15), date(2025, 1, 20)))

        assert len(conflicts) == 1
        assert [n["event_key"] for n in notifications] == ["assignment.conflict"]
        assert notifications[0]["payload"]["conflicts"][0]["overlap_start"] == "2025-01-15"

    def test_clean_check_is_silent(self, db, notifications):
        assert check_conflicts(db, Candidate("worker", uuid.uuid4(), date(2025, 1, 1))) == []
        assert notifications == []
