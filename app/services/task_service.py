"""Task ledger service.

Tasks are work items toward one framework's requirements, bound to exactly
one ComplianceProgress row of the same framework.

Rules:
  - Referenced ids (framework, progress, assignee) are verified before any
    foreign key is set.
  - Patches go through a whitelisted merge; relation fields are immutable
    once the task exists.
  - db.session.commit() happens only in the service layer.

Side effects:
  Every create, and every update that changes status, triggers a full
  recompute of the task's progress row AFTER the task commit. The two are
  ordered but not atomic: if the recompute fails, the task change stays
  committed and PartialFailureError is raised with the saved task.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import (
    InvalidReferenceError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from app.models import db
from app.models.compliance import (
    TASK_PRIORITIES,
    TASK_STATUSES,
    ComplianceProgress,
    Framework,
    Task,
)
from app.models.organization import User
from app.services import progress_service
from app.utils.helpers import clean_label_list, parse_date_input, parse_int_field

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY_TASK_LIMIT = 10
_URGENT_PRIORITIES = ("high", "critical")

# Fields a caller may change on an existing task.
_PATCHABLE_FIELDS = frozenset(
    ["name", "description", "status", "priority", "due_date", "requirements", "notes", "assigned_to_id"]
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_task(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError(resource="Task", resource_id=task_id)
    return task


def _validate_status(status: str) -> str:
    if status not in TASK_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(TASK_STATUSES)}", details={"status": status},
        )
    return status


def _validate_priority(priority: str) -> str:
    if priority not in TASK_PRIORITIES:
        raise ValidationError(
            f"priority must be one of: {', '.join(TASK_PRIORITIES)}", details={"priority": priority},
        )
    return priority


def _validate_name(name) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if len(name) > 255:
        raise ValidationError("name must be ≤ 255 characters")
    return name


def _resolve_assignee(assigned_to_id) -> int | None:
    if assigned_to_id is None or assigned_to_id == "":
        return None
    try:
        user = db.session.get(User, int(assigned_to_id))
    except (TypeError, ValueError):
        raise ValidationError("assigned_to_id must be an integer", details={"assigned_to_id": str(assigned_to_id)})
    if user is None:
        raise NotFoundError(resource="User", resource_id=assigned_to_id)
    return user.id


def _clean_task_patch(patch: dict) -> dict:
    """Validate whitelisted fields of ``patch`` into assignable values.

    Unknown keys (including framework_id / compliance_progress_id) are dropped.
    Nothing is assigned until every field has validated.
    """
    cleaned = {}
    for field in _PATCHABLE_FIELDS.intersection(patch):
        value = patch[field]
        if field == "name":
            cleaned[field] = _validate_name(value)
        elif field == "status":
            cleaned[field] = _validate_status(value)
        elif field == "priority":
            cleaned[field] = _validate_priority(value)
        elif field == "due_date":
            cleaned[field] = parse_date_input(value, field="due_date")
        elif field == "requirements":
            cleaned[field] = clean_label_list(value, field="requirements")
        elif field == "assigned_to_id":
            cleaned[field] = _resolve_assignee(value)
        else:
            cleaned[field] = value or None
    return cleaned


def _recompute_after(task: Task, action: str) -> None:
    """Run the progress recompute side effect for a committed task."""
    entity = task.to_dict()
    progress_id = task.compliance_progress_id
    try:
        progress_service.recompute_progress(progress_id)
    except (SQLAlchemyError, NotFoundError) as exc:
        db.session.rollback()
        logger.exception(
            "Progress recompute failed after task %s task_id=%s progress_id=%s",
            action, entity["id"], progress_id,
            extra={"event_type": "partial_failure", "task_id": entity["id"], "progress_id": progress_id},
        )
        raise PartialFailureError(
            resource="Task",
            resource_id=entity["id"],
            side_effect="progress_recompute",
            entity=entity,
            cause=exc,
        ) from exc


# ---------------------------------------------------------------------------
# Core operations
# ---------------------------------------------------------------------------


def create_task(data: dict) -> dict:
    """Create a task and recompute its progress row.

    Business rules:
        - name, framework_id and compliance_progress_id are required.
        - framework and progress row must exist.
        - the progress row must track the same framework as the task.
        - status defaults to pending, priority to medium.
        - a task created directly as completed gets completed_at stamped.

    Returns:
        Serialized Task dict.

    Raises:
        NotFoundError: Framework, progress row or assignee does not exist.
        InvalidReferenceError: Framework and progress row disagree.
        ValidationError: Missing name, bad enum value, bad date.
        PartialFailureError: Task saved but the recompute failed.
    """
    name = _validate_name(data.get("name"))
    framework_id = parse_int_field(data, "framework_id")
    progress_id = parse_int_field(data, "compliance_progress_id")

    framework = db.session.get(Framework, framework_id)
    if framework is None:
        raise NotFoundError(resource="Framework", resource_id=framework_id)
    progress = db.session.get(ComplianceProgress, progress_id)
    if progress is None:
        raise NotFoundError(resource="ComplianceProgress", resource_id=progress_id)
    if progress.framework_id != framework.id:
        raise InvalidReferenceError(
            "Task framework does not match its compliance progress framework",
            details={
                "framework_id": framework.id,
                "compliance_progress_id": progress.id,
                "progress_framework_id": progress.framework_id,
            },
        )

    status = _validate_status(data.get("status") or "pending")
    task = Task(
        name=name,
        description=data.get("description") or None,
        status=status,
        priority=_validate_priority(data.get("priority") or "medium"),
        due_date=parse_date_input(data.get("due_date"), field="due_date"),
        requirements=clean_label_list(data.get("requirements"), field="requirements"),
        notes=data.get("notes") or None,
        framework_id=framework.id,
        compliance_progress_id=progress.id,
        assigned_to_id=_resolve_assignee(data.get("assigned_to_id")),
    )
    if status == "completed":
        task.completed_at = _utcnow()

    db.session.add(task)
    db.session.commit()
    logger.info(
        "Task created id=%s status=%s", task.id, task.status,
        extra={"task_id": task.id, "progress_id": progress.id},
    )

    _recompute_after(task, "create")
    return task.to_dict()


def update_task(task_id: int, patch: dict) -> dict:
    """Apply a partial update to a task.

    The first transition into ``completed`` stamps completed_at; saving an
    already-completed task as completed keeps the original timestamp.
    A status change triggers a recompute of the task's progress row.

    Raises:
        NotFoundError: Task or new assignee does not exist.
        ValidationError: Bad enum value or date.
        PartialFailureError: Task saved but the recompute failed.
    """
    task = _get_task(task_id)
    old_status = task.status

    for field, value in _clean_task_patch(patch).items():
        setattr(task, field, value)

    if task.status == "completed" and old_status != "completed":
        task.completed_at = _utcnow()

    db.session.commit()
    logger.info(
        "Task updated id=%s status=%s->%s", task.id, old_status, task.status,
        extra={"task_id": task.id, "progress_id": task.compliance_progress_id},
    )

    if task.status != old_status:
        _recompute_after(task, "update")
    return task.to_dict()


def get_task(task_id: int) -> dict:
    """Return a single task.

    Raises:
        NotFoundError: If the task does not exist.
    """
    return _get_task(task_id).to_dict()


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


def list_tasks_for_progress(progress_id: int) -> list[dict]:
    """Return all tasks of a progress row, newest first.

    Raises:
        NotFoundError: If the progress row does not exist.
    """
    if db.session.get(ComplianceProgress, progress_id) is None:
        raise NotFoundError(resource="ComplianceProgress", resource_id=progress_id)

    tasks = db.session.execute(
        select(Task)
        .where(Task.compliance_progress_id == progress_id)
        .order_by(Task.created_at.desc(), Task.id.desc())
    ).scalars().all()
    return [t.to_dict() for t in tasks]


def list_priority_tasks(organization_id: int) -> list[dict]:
    """Return the organization's open high/critical tasks, soonest due first.

    Tasks without a due date sort after dated ones; ties keep creation order.
    At most PRIORITY_TASK_LIMIT (default 10) tasks are returned.
    """
    limit = current_app.config.get("PRIORITY_TASK_LIMIT", DEFAULT_PRIORITY_TASK_LIMIT)
    tasks = db.session.execute(
        select(Task)
        .join(ComplianceProgress, Task.compliance_progress_id == ComplianceProgress.id)
        .where(
            ComplianceProgress.organization_id == organization_id,
            Task.priority.in_(_URGENT_PRIORITIES),
            Task.status != "completed",
        )
        .order_by(
            Task.due_date.is_(None),
            Task.due_date.asc(),
            Task.created_at.asc(),
            Task.id.asc(),
        )
        .limit(limit)
    ).scalars().all()
    return [t.to_dict() for t in tasks]
