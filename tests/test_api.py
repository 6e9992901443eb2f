"""
HTTP surface: status codes, payload shapes and the error envelope.
"""
import uuid
from datetime import time, date

import pytest


def _assignment_payload(assignee_id, entity_id=None, start="2025-01-01", end="2025-01-31", **extra):
    payload = {
        "assignee_type": "worker",
        "assignee_id": str(assignee_id),
        "entity_type": "site",
        "entity_id": str(entity_id or uuid.uuid4()),
        "start_date": start,
        "end_date": end,
    }
    payload.update(extra)
    return payload


class TestConflictRoutes:
    def test_check_reports_overlap(self, client):
        worker_id = uuid.uuid4()
        assert client.post("/assignments", json=_assignment_payload(worker_id)).status_code == 201

        response = client.post("/conflicts/check", json={
            "assignee_type": "worker",
            "assignee_id": str(worker_id),
            "start_date": "2025-01-15",
            "end_date": "2025-01-20",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["has_conflicts"] is True
        assert body["conflicts"][0]["overlap_start"] == "2025-01-15"
        assert body["conflicts"][0]["overlap_end"] == "2025-01-20"

    def test_check_rejects_inverted_range(self, client):
        response = client.post("/conflicts/check", json={
            "assignee_type": "worker",
            "assignee_id": str(uuid.uuid4()),
            "start_date": "2025-02-01",
            "end_date": "2025-01-01",
        })
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


class TestAssignmentRoutes:
    def test_create_and_fetch(self, client):
        actor = uuid.uuid4()
        response = client.post(
            "/assignments", json=_assignment_payload(uuid.uuid4()), headers={"X-Actor-Id": str(actor)}
        )

        assert response.status_code == 201
        created = response.json()
        assert created["status"] == "active"
        assert created["assigned_by"] == str(actor)

        fetched = client.get(f"/assignments/{created['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["id"] == created["id"]

    def test_request_id_is_echoed(self, client):
        response = client.get(f"/assignments/{uuid.uuid4()}", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_validation_error_envelope(self, client):
        response = client.post(
            "/assignments", json=_assignment_payload(uuid.uuid4(), start="2025-02-01", end="2025-01-01")
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert "start_date" in body["detail"]

    def test_not_found_envelope(self, client):
        response = client.put(f"/assignments/{uuid.uuid4()}/complete")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_invalid_state_envelope(self, client):
        created = client.post("/assignments", json=_assignment_payload(uuid.uuid4())).json()
        assert client.put(f"/assignments/{created['id']}/cancel", json={"reason": "rain"}).status_code == 200

        response = client.put(f"/assignments/{created['id']}/complete")

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_state"

    def test_strict_conflict_envelope(self, client, monkeypatch):
        from siteworks.config import settings

        monkeypatch.setattr(settings, "strict_conflict_mode", True)
        worker_id = uuid.uuid4()
        client.post("/assignments", json=_assignment_payload(worker_id))

        response = client.post("/assignments", json=_assignment_payload(worker_id, start="2025-01-15", end="2025-01-20"))

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "conflict_detected"
        assert len(body["conflicts"]) == 1

    def test_reassign_and_history(self, client):
        created = client.post("/assignments", json=_assignment_payload(uuid.uuid4())).json()
        new_worker = uuid.uuid4()

        response = client.post(
            f"/assignments/{created['id']}/reassign",
            json={"new_assignee_id": str(new_worker), "reason": "injury"},
        )

        assert response.status_code == 201
        assert response.json()["assignee_id"] == str(new_worker)
        assert response.json()["reassigned_from_id"] == created["id"]

        history = client.get(f"/assignments/{created['id']}/history").json()
        assert [h["action"] for h in history] == ["created", "reassigned"]
        assert history[1]["new_assignee_id"] == str(new_worker)

    def test_update_and_lists(self, client):
        worker_id, site = uuid.uuid4(), uuid.uuid4()
        created = client.post("/assignments", json=_assignment_payload(worker_id, site)).json()

        updated = client.put(f"/assignments/{created['id']}", json={"end_date": None, "notes": "ongoing"})
        assert updated.status_code == 200
        assert updated.json()["end_date"] is None

        assert len(client.get(f"/assignments/worker/{worker_id}").json()) == 1
        assert len(client.get(f"/assignments/site/{site}").json()) == 1
        timeline = client.get(
            f"/assignments/worker/{worker_id}/timeline",
            params={"start_date": "2025-06-01", "end_date": "2025-06-30"},
        )
        assert len(timeline.json()) == 1
        listing = client.get("/assignments", params={"assignee_type": "worker"}).json()
        assert listing["pagination"]["total"] == 1

    def test_cover_absence(self, client):
        absent, substitute = uuid.uuid4(), uuid.uuid4()
        client.post("/assignments", json=_assignment_payload(absent, start="2025-01-13", end="2025-01-17"))

        response = client.post("/assignments/absences/cover", json={
            "worker_id": str(absent),
            "absent_date": "2025-01-14",
            "candidate_worker_ids": [str(substitute)],
        })

        assert response.status_code == 200
        assert [a["assignee_id"] for a in response.json()] == [str(substitute)]


class TestTimesheetRoutes:
    @pytest.fixture
    def worked(self, make_worker, add_attendance, site_id):
        worker = make_worker(rate="20.00")
        add_attendance(worker.id, site_id, date(2025, 1, 6), time(8, 0), time(19, 0))
        return worker

    def _generate(self, client, worker, site_id):
        return client.post("/timesheets/generate", json={
            "worker_id": str(worker.id),
            "site_id": str(site_id),
            "week_start_date": "2025-01-06",
        })

    def test_generate_and_approve(self, client, worked, site_id):
        response = self._generate(client, worked, site_id)
        assert response.status_code == 200
        timesheet = response.json()
        assert timesheet["status"] == "draft"
        assert float(timesheet["regular_hours"]) == 8
        assert float(timesheet["overtime_hours"]) == 3
        assert timesheet["daily_breakdown"][0]["date"] == "2025-01-06"

        assert client.put(f"/timesheets/{timesheet['id']}/submit").json()["status"] == "submitted"
        approved = client.put(f"/timesheets/{timesheet['id']}/approve")
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

    def test_wrong_week_start(self, client, worked, site_id):
        response = client.post("/timesheets/generate", json={
            "worker_id": str(worked.id),
            "site_id": str(site_id),
            "week_start_date": "2025-01-07",
        })
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_approve_draft_is_invalid_state(self, client, worked, site_id):
        timesheet = self._generate(client, worked, site_id).json()
        response = client.put(f"/timesheets/{timesheet['id']}/approve")
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_state"

    def test_reject_and_reopen(self, client, worked, site_id):
        timesheet = self._generate(client, worked, site_id).json()
        client.put(f"/timesheets/{timesheet['id']}/submit")

        rejected = client.put(f"/timesheets/{timesheet['id']}/reject", json={"reason": "missing sign-off"})
        assert rejected.json()["rejection_reason"] == "missing sign-off"

        reopened = client.put(f"/timesheets/{timesheet['id']}/reopen")
        assert reopened.json()["status"] == "draft"
        notes = client.put(f"/timesheets/{timesheet['id']}", json={"notes": "signed"})
        assert notes.json()["notes"] == "signed"

    def test_site_generate_reports_failures(self, client, worked, site_id):
        ghost = uuid.uuid4()
        for worker_id in (worked.id, ghost):
            client.post("/assignments", json=_assignment_payload(worker_id, site_id, start="2025-01-01", end=None))

        response = client.post(f"/timesheets/site/{site_id}/generate", json={"week_start_date": "2025-01-06"})

        assert response.status_code == 200
        body = response.json()
        assert [t["worker_id"] for t in body["succeeded"]] == [str(worked.id)]
        assert body["failed"][0]["worker_id"] == str(ghost)
        assert body["failed"][0]["error"] == "not_found"

    def test_queries(self, client, worked, site_id):
        timesheet = self._generate(client, worked, site_id).json()

        assert client.get(f"/timesheets/{timesheet['id']}").status_code == 200
        assert client.get(f"/timesheets/{uuid.uuid4()}").status_code == 404
        listing = client.get("/timesheets", params={"site_id": str(site_id)}).json()
        assert listing["pagination"]["total"] == 1
        summary = client.get(f"/timesheets/site/{site_id}/summary", params={"week_start_date": "2025-01-06"}).json()
        assert summary["summary"]["total_workers"] == 1
        assert summary["summary"]["by_status"]["draft"] == 1
