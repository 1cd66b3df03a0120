"""Compliance progress aggregator.

Maintains the denormalized task counters on ComplianceProgress, one row per
(organization, framework).

Recompute model:
  recompute_progress() always re-reads ALL tasks of the row and overwrites
  the counters. There are no incremental deltas, so two concurrent
  recomputes (triggered by updates to different tasks of the same row)
  both converge on the same counters regardless of commit order.

  Between recomputes the stored counters are the source of truth; reads
  derive the percentage from them and never re-query tasks.

Row uniqueness:
  get_or_create() relies on the (organization_id, framework_id) unique
  constraint. A lost insert race surfaces as IntegrityError and is
  resolved by re-reading the winner's row.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, NotFoundError
from app.models import db
from app.models.compliance import ComplianceProgress, Framework, Task, calculate_percentage
from app.models.organization import Organization

logger = logging.getLogger(__name__)


def _get_progress_row(progress_id: int) -> ComplianceProgress:
    progress = db.session.get(ComplianceProgress, progress_id)
    if progress is None:
        raise NotFoundError(resource="ComplianceProgress", resource_id=progress_id)
    return progress


def _find_row(organization_id: int, framework_id: int) -> ComplianceProgress | None:
    return db.session.execute(
        select(ComplianceProgress).where(
            ComplianceProgress.organization_id == organization_id,
            ComplianceProgress.framework_id == framework_id,
        )
    ).scalar_one_or_none()


# ── Recompute ────────────────────────────────────────────────────────────────


def recompute_progress(progress_id: int) -> dict:
    """Rebuild a progress row's counters from a full scan of its tasks.

    Blocked tasks count toward total_tasks only; they are in none of the
    completed / in_progress / pending buckets.

    Returns:
        Serialized ComplianceProgress dict.

    Raises:
        NotFoundError: If the progress row does not exist.
    """
    progress = _get_progress_row(progress_id)

    rows = db.session.execute(
        select(Task.status, func.count(Task.id))
        .where(Task.compliance_progress_id == progress_id)
        .group_by(Task.status)
    ).all()
    by_status = {status: n for status, n in rows}

    progress.total_tasks = sum(by_status.values())
    progress.completed_tasks = by_status.get("completed", 0)
    progress.in_progress_tasks = by_status.get("in_progress", 0)
    progress.pending_tasks = by_status.get("pending", 0)
    progress.progress_percentage = calculate_percentage(
        progress.completed_tasks, progress.total_tasks,
    )
    db.session.commit()

    logger.info(
        "ComplianceProgress recomputed id=%s total=%s completed=%s pct=%s",
        progress.id, progress.total_tasks, progress.completed_tasks, progress.progress_percentage,
        extra={"progress_id": progress.id, "organization_id": progress.organization_id},
    )
    return progress.to_dict()


# ── Reads ────────────────────────────────────────────────────────────────────


def get_progress(organization_id: int) -> list[dict]:
    """Return every progress row of an organization (percentage from stored counters)."""
    rows = db.session.execute(
        select(ComplianceProgress)
        .where(ComplianceProgress.organization_id == organization_id)
        .order_by(ComplianceProgress.id)
    ).scalars().all()
    return [p.to_dict() for p in rows]


def get_progress_by_framework(organization_id: int, framework_id: int) -> dict:
    """Return one organization/framework progress row including its tasks.

    Raises:
        NotFoundError: If the organization has no row for the framework.
    """
    progress = _find_row(organization_id, framework_id)
    if progress is None:
        raise NotFoundError(
            resource="ComplianceProgress",
            resource_id=f"organization={organization_id},framework={framework_id}",
        )
    return progress.to_dict(include_tasks=True)


# ── Find-or-create ───────────────────────────────────────────────────────────


def get_or_create(organization_id: int, framework_id: int) -> dict:
    """Return the organization's progress row for a framework, creating it at zero.

    Safe under concurrent calls for the same pair: exactly one row survives.

    Raises:
        NotFoundError: If the organization or framework does not exist.
        ConflictError: If the insert collided but no row can be re-read.
    """
    existing = _find_row(organization_id, framework_id)
    if existing is not None:
        return existing.to_dict()

    if db.session.get(Organization, organization_id) is None:
        raise NotFoundError(resource="Organization", resource_id=organization_id)
    if db.session.get(Framework, framework_id) is None:
        raise NotFoundError(resource="Framework", resource_id=framework_id)

    progress = ComplianceProgress(
        organization_id=organization_id,
        framework_id=framework_id,
        total_tasks=0,
        completed_tasks=0,
        in_progress_tasks=0,
        pending_tasks=0,
        progress_percentage=0,
    )
    db.session.add(progress)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost the insert race: the other writer's row is the one to use.
        db.session.rollback()
        existing = _find_row(organization_id, framework_id)
        if existing is None:
            raise ConflictError(
                resource="ComplianceProgress",
                field="organization_id,framework_id",
                value=f"{organization_id},{framework_id}",
            )
        logger.info(
            "ComplianceProgress insert conflict resolved as lookup id=%s", existing.id,
            extra={"organization_id": organization_id, "event_type": "conflict_on_create"},
        )
        return existing.to_dict()

    logger.info(
        "ComplianceProgress created id=%s", progress.id,
        extra={"organization_id": organization_id, "progress_id": progress.id},
    )
    return progress.to_dict()
