"""Document store service.

Compliance documents bound to a framework and an organization, with a
collaborator set and an append-only version history.

Rules:
  - Referenced ids (framework, organization, author, collaborator) are
    verified before any foreign key is set.
  - Patches go through a whitelisted merge; organization and creator are
    immutable once the document exists.
  - Only a real content change appends a version. Title/status/metadata
    edits and collaborator changes never do.

Side effects:
  create_document() and content-changing update_document() calls append a
  version AFTER the document commit. If the append fails the document
  change stays committed and PartialFailureError is raised.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.exceptions import (
    ConflictError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from app.models import db
from app.models.compliance import Framework
from app.models.document import DOCUMENT_STATUSES, Document, DocumentCollaborator
from app.models.organization import Organization, User
from app.services import versioning
from app.utils.helpers import parse_int_field

logger = logging.getLogger(__name__)

INITIAL_CHANGE_LOG = "Initial version"
DEFAULT_CHANGE_LOG = "Document updated"

_PATCHABLE_FIELDS = frozenset(
    ["title", "description", "content", "status", "progress", "template_id", "metadata", "framework_id"]
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_document(document_id: int) -> Document:
    document = db.session.get(Document, document_id)
    if document is None:
        raise NotFoundError(resource="Document", resource_id=document_id)
    return document


def _require(model, pk, label):
    obj = db.session.get(model, pk)
    if obj is None:
        raise NotFoundError(resource=label, resource_id=pk)
    return obj


def _validate_title(title) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})
    if len(title) > 255:
        raise ValidationError("title must be ≤ 255 characters")
    return title


def _validate_content(content) -> str:
    if content is None:
        raise ValidationError("content is required", details={"content": "required"})
    if not isinstance(content, str):
        raise ValidationError("content must be a string")
    return content


def _validate_status(status) -> str:
    if status not in DOCUMENT_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(DOCUMENT_STATUSES)}", details={"status": status},
        )
    return status


def _validate_progress(progress) -> float:
    try:
        value = float(progress)
    except (TypeError, ValueError):
        raise ValidationError("progress must be a number", details={"progress": str(progress)})
    if not 0 <= value <= 100:
        raise ValidationError("progress must be between 0 and 100", details={"progress": value})
    return value


def _validate_metadata(metadata):
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object")
    return metadata


def _clean_document_patch(patch: dict) -> dict:
    """Validate whitelisted fields of ``patch`` into model attribute values."""
    cleaned = {}
    for field in _PATCHABLE_FIELDS.intersection(patch):
        value = patch[field]
        if field == "title":
            cleaned["title"] = _validate_title(value)
        elif field == "content":
            if value is not None:
                cleaned["content"] = _validate_content(value)
        elif field == "status":
            cleaned["status"] = _validate_status(value)
        elif field == "progress":
            cleaned["progress"] = _validate_progress(value)
        elif field == "metadata":
            cleaned["meta"] = _validate_metadata(value)
        elif field == "framework_id":
            framework_id = parse_int_field(patch, "framework_id")
            cleaned["framework_id"] = _require(Framework, framework_id, "Framework").id
        else:
            cleaned[field] = value or None
    return cleaned


def _append_after(document: Document, content: str, change_log: str, editor_id: int | None) -> None:
    """Run the version-append side effect for a committed document."""
    document_id = document.id
    try:
        versioning.append_version(document_id, content, change_log, editor_id)
    except (SQLAlchemyError, ConflictError) as exc:
        db.session.rollback()
        logger.exception(
            "Version append failed for document_id=%s", document_id,
            extra={"event_type": "partial_failure", "document_id": document_id},
        )
        raise PartialFailureError(
            resource="Document",
            resource_id=document_id,
            side_effect="version_append",
            entity=_get_document(document_id).to_dict(),
            cause=exc,
        ) from exc


# ---------------------------------------------------------------------------
# Core CRUD
# ---------------------------------------------------------------------------


def create_document(data: dict, author_id: int) -> dict:
    """Create a document and its initial 1.0.0 version.

    Business rules:
        - title, content, framework_id and organization_id are required.
        - author, framework and organization must exist.
        - status defaults to draft; progress must be within 0-100.

    Returns:
        Serialized Document dict including versions.

    Raises:
        NotFoundError: Author, framework or organization does not exist.
        ValidationError: Missing/invalid field.
        PartialFailureError: Document saved but the initial version was not.
    """
    title = _validate_title(data.get("title"))
    content = _validate_content(data.get("content"))
    framework_id = parse_int_field(data, "framework_id")
    organization_id = parse_int_field(data, "organization_id")

    author = _require(User, author_id, "User")
    framework = _require(Framework, framework_id, "Framework")
    organization = _require(Organization, organization_id, "Organization")

    document = Document(
        title=title,
        description=data.get("description") or None,
        content=content,
        status=_validate_status(data.get("status") or "draft"),
        progress=_validate_progress(data.get("progress", 0) or 0),
        template_id=data.get("template_id") or None,
        meta=_validate_metadata(data.get("metadata")),
        framework_id=framework.id,
        organization_id=organization.id,
        created_by_id=author.id,
    )
    db.session.add(document)
    db.session.commit()
    logger.info(
        "Document created id=%s", document.id,
        extra={"document_id": document.id, "organization_id": organization.id, "user_id": author.id},
    )

    _append_after(document, content, INITIAL_CHANGE_LOG, author.id)
    return document.to_dict(include_versions=True)


def update_document(document_id: int, patch: dict, editor_id: int | None = None) -> dict:
    """Apply a partial update; append a version when the content changed.

    ``patch["change_log"]`` (optional) describes the content change; it
    defaults to "Document updated".

    Raises:
        NotFoundError: Document or new framework does not exist.
        ValidationError: Invalid field value.
        PartialFailureError: Document saved but the version append failed.
    """
    document = _get_document(document_id)
    old_content = document.content

    cleaned = _clean_document_patch(patch)
    for field, value in cleaned.items():
        setattr(document, field, value)
    db.session.commit()

    content_changed = "content" in cleaned and cleaned["content"] != old_content
    logger.info(
        "Document updated id=%s fields=%s content_changed=%s",
        document.id, sorted(cleaned), content_changed,
        extra={"document_id": document.id, "user_id": editor_id},
    )

    if content_changed:
        change_log = (patch.get("change_log") or "").strip() or DEFAULT_CHANGE_LOG
        _append_after(document, cleaned["content"], change_log, editor_id)
    return document.to_dict(include_versions=True)


def remove_document(document_id: int) -> None:
    """Hard-delete a document together with its versions, comments and collaborator rows."""
    document = _get_document(document_id)
    db.session.delete(document)
    db.session.commit()
    logger.info("Document deleted id=%s", document_id, extra={"document_id": document_id})


def find_one(document_id: int) -> dict:
    """Return a document with collaborators and versions.

    Raises:
        NotFoundError: If the document does not exist.
    """
    return _get_document(document_id).to_dict(include_versions=True)


def list_all(organization_id: int | None = None, framework_id: int | None = None) -> list[dict]:
    """Return documents, most recently updated first, optionally filtered."""
    stmt = select(Document)
    if organization_id is not None:
        stmt = stmt.where(Document.organization_id == organization_id)
    if framework_id is not None:
        stmt = stmt.where(Document.framework_id == framework_id)
    stmt = stmt.order_by(Document.updated_at.desc(), Document.id.desc())
    return [d.to_dict() for d in db.session.execute(stmt).scalars().all()]


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


def _find_link(document_id: int, user_id: int) -> DocumentCollaborator | None:
    return db.session.execute(
        select(DocumentCollaborator).where(
            DocumentCollaborator.document_id == document_id,
            DocumentCollaborator.user_id == user_id,
        )
    ).scalar_one_or_none()


def add_collaborator(document_id: int, user_id: int) -> dict:
    """Add a user to the collaborator set. Adding a present member is a no-op.

    Raises:
        NotFoundError: Document or user does not exist.
    """
    document = _get_document(document_id)
    user = _require(User, user_id, "User")

    if _find_link(document.id, user.id) is None:
        db.session.add(DocumentCollaborator(document_id=document.id, user_id=user.id))
        try:
            db.session.commit()
        except IntegrityError:
            # Added concurrently by another request: membership is what we wanted.
            db.session.rollback()
        else:
            logger.info(
                "Collaborator added document_id=%s user_id=%s", document.id, user.id,
                extra={"document_id": document.id, "user_id": user.id},
            )
        db.session.refresh(document)
    return document.to_dict()


def remove_collaborator(document_id: int, user_id: int) -> dict:
    """Remove a user from the collaborator set. Removing a non-member is a no-op.

    Raises:
        NotFoundError: Document does not exist.
    """
    document = _get_document(document_id)
    link = _find_link(document.id, user_id)
    if link is not None:
        document.collaborator_links.remove(link)
        db.session.commit()
        logger.info(
            "Collaborator removed document_id=%s user_id=%s", document.id, user_id,
            extra={"document_id": document.id, "user_id": user_id},
        )
    return document.to_dict()
