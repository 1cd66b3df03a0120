"""
Tests for the task ledger service.

Covers:
  - create_task: defaults, counters recomputed, completed_at stamping
  - create_task: framework / progress mismatch → InvalidReferenceError
  - create_task: unknown framework / progress / assignee → NotFoundError
  - update_task: lifecycle pending → in_progress → completed
  - update_task: idempotent completion timestamp
  - update_task: relation fields are not patchable
  - update_task: recompute failure → PartialFailureError, task stays saved
  - list_tasks_for_progress / list_priority_tasks ordering and filters
"""

from datetime import date, timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import (
    InvalidReferenceError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from app.models import db
from app.models.compliance import ComplianceProgress, Task
from app.services import progress_service, task_service


def _task_payload(progress, **overrides):
    data = {
        "name": "Enable MFA for admins",
        "framework_id": progress.framework_id,
        "compliance_progress_id": progress.id,
    }
    data.update(overrides)
    return data


# ── create_task ───────────────────────────────────────────────────────────────


class TestCreateTask:
    def test_defaults_and_recompute(self, progress):
        result = task_service.create_task(_task_payload(progress))

        assert result["status"] == "pending"
        assert result["priority"] == "medium"
        assert result["completed_at"] is None
        assert result["framework_name"] == "SOC2"

        row = db.session.get(ComplianceProgress, progress.id)
        assert row.total_tasks == 1
        assert row.pending_tasks == 1
        assert row.progress_percentage == 0.0

    def test_created_completed_gets_timestamp(self, progress):
        result = task_service.create_task(_task_payload(progress, status="completed"))

        assert result["completed_at"] is not None
        assert db.session.get(ComplianceProgress, progress.id).progress_percentage == 100.0

    def test_optional_fields(self, progress, user):
        result = task_service.create_task(_task_payload(
            progress,
            priority="critical",
            due_date="2030-01-31",
            requirements=[" 8.3.1 ", "", "8.3.2"],
            assigned_to_id=user.id,
        ))

        assert result["due_date"] == "2030-01-31"
        assert result["requirements"] == ["8.3.1", "8.3.2"]
        assert result["assigned_to"]["full_name"] == "Jane Doe"

    def test_framework_mismatch_rejected(self, progress, make_framework):
        other = make_framework("GDPR")

        with pytest.raises(InvalidReferenceError):
            task_service.create_task(_task_payload(progress, framework_id=other.id))
        assert Task.query.count() == 0

    def test_unknown_progress(self, framework):
        with pytest.raises(NotFoundError, match="ComplianceProgress"):
            task_service.create_task({
                "name": "x", "framework_id": framework.id, "compliance_progress_id": 999,
            })

    def test_unknown_framework(self, progress):
        with pytest.raises(NotFoundError, match="Framework"):
            task_service.create_task(_task_payload(progress, framework_id=999))

    def test_unknown_assignee(self, progress):
        with pytest.raises(NotFoundError, match="User"):
            task_service.create_task(_task_payload(progress, assigned_to_id=999))

    @pytest.mark.parametrize("field,value", [
        ("name", "  "),
        ("status", "done"),
        ("priority", "urgent"),
        ("due_date", "next week"),
    ])
    def test_invalid_fields(self, progress, field, value):
        with pytest.raises(ValidationError):
            task_service.create_task(_task_payload(progress, **{field: value}))
        assert Task.query.count() == 0


# ── update_task ───────────────────────────────────────────────────────────────


class TestUpdateTask:
    def test_lifecycle_scenario(self, progress):
        task = task_service.create_task(_task_payload(progress))

        task_service.update_task(task["id"], {"status": "in_progress"})
        row = db.session.get(ComplianceProgress, progress.id)
        assert (row.total_tasks, row.in_progress_tasks, row.pending_tasks) == (1, 1, 0)

        result = task_service.update_task(task["id"], {"status": "completed"})
        row = db.session.get(ComplianceProgress, progress.id)
        assert (row.completed_tasks, row.in_progress_tasks) == (1, 0)
        assert row.progress_percentage == 100.0
        assert result["completed_at"] is not None

    def test_completion_timestamp_is_idempotent(self, progress):
        task = task_service.create_task(_task_payload(progress))
        first = task_service.update_task(task["id"], {"status": "completed"})
        again = task_service.update_task(task["id"], {"status": "completed", "notes": "re-saved"})

        assert again["completed_at"] == first["completed_at"]
        assert again["notes"] == "re-saved"

    def test_reopen_keeps_completed_at(self, progress):
        task = task_service.create_task(_task_payload(progress, status="completed"))
        reopened = task_service.update_task(task["id"], {"status": "in_progress"})

        assert reopened["completed_at"] == task["completed_at"]
        assert db.session.get(ComplianceProgress, progress.id).completed_tasks == 0

    def test_relation_fields_ignored(self, progress, organization, make_framework):
        other_fw = make_framework("GDPR")
        other_progress = ComplianceProgress(organization_id=organization.id, framework_id=other_fw.id)
        db.session.add(other_progress)
        db.session.commit()
        task = task_service.create_task(_task_payload(progress))

        result = task_service.update_task(task["id"], {
            "framework_id": other_fw.id,
            "compliance_progress_id": other_progress.id,
            "name": "Renamed",
        })

        assert result["framework_id"] == progress.framework_id
        assert result["compliance_progress_id"] == progress.id
        assert result["name"] == "Renamed"

    def test_invalid_patch_changes_nothing(self, progress):
        task = task_service.create_task(_task_payload(progress))

        with pytest.raises(ValidationError):
            task_service.update_task(task["id"], {"name": "Renamed", "status": "done"})
        db.session.rollback()
        assert db.session.get(Task, task["id"]).name == "Enable MFA for admins"

    def test_unknown_task(self):
        with pytest.raises(NotFoundError):
            task_service.update_task(999, {"status": "completed"})

    def test_recompute_failure_is_partial(self, progress, monkeypatch):
        task = task_service.create_task(_task_payload(progress))

        def _boom(progress_id):
            raise SQLAlchemyError("database went away")

        monkeypatch.setattr(progress_service, "recompute_progress", _boom)

        with pytest.raises(PartialFailureError) as exc_info:
            task_service.update_task(task["id"], {"status": "completed"})

        err = exc_info.value
        assert err.committed is True
        assert err.side_effect == "progress_recompute"
        assert err.entity["status"] == "completed"
        assert db.session.get(Task, task["id"]).status == "completed"
        # Counters are stale until the next recompute
        assert db.session.get(ComplianceProgress, progress.id).completed_tasks == 0


# ── Listings ──────────────────────────────────────────────────────────────────


class TestListings:
    def test_list_tasks_for_progress_newest_first(self, progress):
        first = task_service.create_task(_task_payload(progress, name="First"))
        second = task_service.create_task(_task_payload(progress, name="Second"))

        ids = [t["id"] for t in task_service.list_tasks_for_progress(progress.id)]
        assert ids == [second["id"], first["id"]]

    def test_list_tasks_for_unknown_progress(self):
        with pytest.raises(NotFoundError):
            task_service.list_tasks_for_progress(999)

    def test_priority_tasks_ordering(self, progress):
        today = date.today()
        a = task_service.create_task(_task_payload(
            progress, name="A", priority="high", due_date=(today + timedelta(days=5)).isoformat(),
        ))
        b = task_service.create_task(_task_payload(
            progress, name="B", priority="critical", due_date=(today + timedelta(days=1)).isoformat(),
        ))
        task_service.create_task(_task_payload(progress, name="C", priority="low"))
        d = task_service.create_task(_task_payload(progress, name="D", priority="high"))
        task_service.create_task(_task_payload(progress, name="E", priority="critical", status="completed"))

        result = task_service.list_priority_tasks(progress.organization_id)

        assert [t["name"] for t in result] == ["B", "A", "D"]
        assert [t["id"] for t in result] == [b["id"], a["id"], d["id"]]

    def test_priority_tasks_limit(self, app, progress):
        for i in range(12):
            task_service.create_task(_task_payload(progress, name=f"T{i}", priority="high"))

        assert len(task_service.list_priority_tasks(progress.organization_id)) == 10

        app.config["PRIORITY_TASK_LIMIT"] = 3
        try:
            assert len(task_service.list_priority_tasks(progress.organization_id)) == 3
        finally:
            app.config["PRIORITY_TASK_LIMIT"] = 10

    def test_priority_tasks_scoped_to_organization(self, progress):
        task_service.create_task(_task_payload(progress, priority="high"))

        assert task_service.list_priority_tasks(progress.organization_id + 1) == []
