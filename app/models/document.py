"""
Document domain models.

Models:
    - Document: rich-content compliance document bound to a framework and organization
    - DocumentCollaborator: membership row of a document's collaborator set
    - DocumentVersion: immutable content snapshot, one per content change

A Document exclusively owns its versions, collaborator rows and comments;
deleting it removes them (ORM cascade plus ON DELETE CASCADE).
"""

from datetime import datetime, timezone

from app.models import db

DOCUMENT_STATUSES = ("draft", "in_review", "approved", "published", "archived")


def _as_utc(value):
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Document ─────────────────────────────────────────────────────────────────


class Document(db.Model):
    __tablename__ = "documents"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    content = db.Column(db.Text, nullable=False, default="")
    status = db.Column(
        db.String(20), nullable=False, default="draft",
        comment="draft | in_review | approved | published | archived",
    )
    progress = db.Column(db.Float, nullable=False, default=0, comment="0-100, author supplied")
    template_id = db.Column(db.String(100), nullable=True)
    meta = db.Column("metadata", db.JSON, nullable=True)

    framework_id = db.Column(db.Integer, db.ForeignKey("frameworks.id"), nullable=False, index=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ── Relationships ────────────────────────────────────────────────────
    framework = db.relationship("Framework")
    organization = db.relationship("Organization")
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    collaborator_links = db.relationship(
        "DocumentCollaborator", back_populates="document",
        cascade="all, delete-orphan", order_by="DocumentCollaborator.id",
    )
    versions = db.relationship(
        "DocumentVersion", back_populates="document", lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="DocumentVersion.id",
    )
    comments = db.relationship(
        "Comment", back_populates="document", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    @property
    def collaborators(self):
        return [link.user for link in self.collaborator_links]

    @property
    def last_updated(self):
        """Relative age label shown on document cards."""
        if not self.updated_at:
            return None
        days = (datetime.now(timezone.utc) - _as_utc(self.updated_at)).days
        if days <= 0:
            return "Today"
        if days == 1:
            return "1 day ago"
        if days < 7:
            return f"{days} days ago"
        if days < 30:
            return f"{days // 7} weeks ago"
        return f"{days // 30} months ago"

    def to_dict(self, include_versions=False):
        result = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "status": self.status,
            "progress": self.progress,
            "template_id": self.template_id,
            "metadata": self.meta or {},
            "framework_id": self.framework_id,
            "framework": self.framework.to_dict() if self.framework else None,
            "organization_id": self.organization_id,
            "created_by_id": self.created_by_id,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "collaborators": [u.to_summary() for u in self.collaborators],
            "last_updated": self.last_updated,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_versions:
            result["versions"] = [v.to_dict() for v in self.versions]
        return result

    def __repr__(self):
        return f"<Document {self.id}: {self.title}>"


# ── DocumentCollaborator ─────────────────────────────────────────────────────


class DocumentCollaborator(db.Model):
    __tablename__ = "document_collaborators"

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(
        db.Integer, db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    added_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("document_id", "user_id", name="uq_document_collaborator"),
    )

    document = db.relationship("Document", back_populates="collaborator_links")
    user = db.relationship("User")


# ── DocumentVersion ──────────────────────────────────────────────────────────


class DocumentVersion(db.Model):
    """Immutable snapshot. Version strings are assigned by app.services.versioning only."""

    __tablename__ = "document_versions"

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(
        db.Integer, db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    version = db.Column(db.String(30), nullable=False, comment="MAJOR.MINOR.PATCH")
    content = db.Column(db.Text, nullable=False, default="")
    change_log = db.Column(db.Text, nullable=True)
    meta = db.Column("metadata", db.JSON, nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("document_id", "version", name="uq_document_version"),
    )

    document = db.relationship("Document", back_populates="versions")
    created_by = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "document_id": self.document_id,
            "version": self.version,
            "content": self.content,
            "change_log": self.change_log,
            "metadata": self.meta or {},
            "created_by_id": self.created_by_id,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<DocumentVersion {self.id}: doc={self.document_id} v{self.version}>"
