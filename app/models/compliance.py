"""
Compliance domain models.

Models:
    - Framework: regulatory framework catalog entry (PCI-DSS, SOC2, GDPR, ...)
    - ComplianceProgress: denormalized task counters per (organization, framework)
    - Task: work item toward a framework's requirements

ComplianceProgress counters are a cache over the Task table. They are only
written by app.services.progress_service.recompute_progress, which always
re-reads every task of the row.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from app.models import db

FRAMEWORK_TYPES = ("PCI-DSS", "SOC2", "GDPR", "ISO27001", "HIPAA")

TASK_STATUSES = ("pending", "in_progress", "completed", "blocked")
TASK_PRIORITIES = ("low", "medium", "high", "critical")


def calculate_percentage(completed: int, total: int) -> float:
    """Completion percentage rounded half-up to two decimals; 0 when total is 0."""
    if not total:
        return 0.0
    ratio = Decimal(completed) * 100 / Decimal(total)
    return float(ratio.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# ── Framework ────────────────────────────────────────────────────────────────


class Framework(db.Model):
    __tablename__ = "frameworks"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(
        db.String(20), unique=True, nullable=False,
        comment="PCI-DSS | SOC2 | GDPR | ISO27001 | HIPAA",
    )
    display_name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    requirements = db.Column(db.Text, nullable=True)
    categories = db.Column(db.JSON, nullable=True, comment="Ordered list of category labels")
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "requirements": self.requirements,
            "categories": list(self.categories or []),
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Framework {self.id}: {self.name}>"


# ── ComplianceProgress ───────────────────────────────────────────────────────


class ComplianceProgress(db.Model):
    __tablename__ = "compliance_progress"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    framework_id = db.Column(
        db.Integer, db.ForeignKey("frameworks.id"), nullable=False, index=True,
    )
    total_tasks = db.Column(db.Integer, nullable=False, default=0)
    completed_tasks = db.Column(db.Integer, nullable=False, default=0)
    in_progress_tasks = db.Column(db.Integer, nullable=False, default=0)
    pending_tasks = db.Column(db.Integer, nullable=False, default=0)
    progress_percentage = db.Column(db.Float, nullable=False, default=0, comment="0.00-100.00")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("organization_id", "framework_id", name="uq_progress_org_framework"),
    )

    framework = db.relationship("Framework")
    organization = db.relationship("Organization")
    tasks = db.relationship(
        "Task", back_populates="compliance_progress", lazy="dynamic",
        order_by="Task.created_at.desc()",
    )

    @property
    def blocked_tasks(self):
        """Tasks counted in total but in none of the three buckets."""
        return self.total_tasks - self.completed_tasks - self.in_progress_tasks - self.pending_tasks

    def to_dict(self, include_tasks=False):
        result = {
            "id": self.id,
            "organization_id": self.organization_id,
            "framework_id": self.framework_id,
            "framework": self.framework.to_dict() if self.framework else None,
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "in_progress_tasks": self.in_progress_tasks,
            "pending_tasks": self.pending_tasks,
            "blocked_tasks": self.blocked_tasks,
            "progress_percentage": calculate_percentage(self.completed_tasks, self.total_tasks),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_tasks:
            result["tasks"] = [t.to_dict() for t in self.tasks]
        return result

    def __repr__(self):
        return f"<ComplianceProgress {self.id}: org={self.organization_id} fw={self.framework_id}>"


# ── Task ─────────────────────────────────────────────────────────────────────


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="pending",
        comment="pending | in_progress | completed | blocked",
    )
    priority = db.Column(
        db.String(20), nullable=False, default="medium",
        comment="low | medium | high | critical",
    )
    due_date = db.Column(db.Date, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    requirements = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    framework_id = db.Column(
        db.Integer, db.ForeignKey("frameworks.id"), nullable=False, index=True,
    )
    compliance_progress_id = db.Column(
        db.Integer, db.ForeignKey("compliance_progress.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    assigned_to_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    framework = db.relationship("Framework")
    compliance_progress = db.relationship("ComplianceProgress", back_populates="tasks")
    assigned_to = db.relationship("User")

    @property
    def is_overdue(self):
        if not self.due_date or self.status == "completed":
            return False
        return date.today() > self.due_date

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "requirements": list(self.requirements or []),
            "notes": self.notes,
            "is_overdue": self.is_overdue,
            "framework_id": self.framework_id,
            "framework_name": self.framework.name if self.framework else None,
            "compliance_progress_id": self.compliance_progress_id,
            "assigned_to_id": self.assigned_to_id,
            "assigned_to": self.assigned_to.to_summary() if self.assigned_to else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Task {self.id}: {self.name} [{self.status}]>"
