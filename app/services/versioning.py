"""Document version engine.

Every content change of a Document appends one immutable DocumentVersion.
Version strings are generated here and nowhere else: callers never supply
them.

Numbering:
  MAJOR.MINOR.PATCH, starting at 1.0.0. Every content change is a patch
  bump (1.0.0 → 1.0.1 → 1.0.2 ...). There is no minor/major bump path.

Concurrency:
  The next number is derived from the latest stored version, so two
  concurrent appends for one document can compute the same string. The
  (document_id, version) unique constraint rejects the loser, which
  re-reads the latest version and retries. Duplicate strings can never be
  stored; the relative order of racing appends is not deterministic.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.document import Document, DocumentVersion

logger = logging.getLogger(__name__)

INITIAL_VERSION = "1.0.0"
MAX_APPEND_ATTEMPTS = 3


def increment_version(current_version: str) -> str:
    """Return ``current_version`` with its patch component incremented.

    Missing components default to 0 (``"1"`` → ``"1.0.1"``, ``"1.2"`` →
    ``"1.2.1"``). Components beyond the third are carried over untouched.

    Raises:
        ValidationError: If a component is not an integer.
    """
    raw_parts = str(current_version).strip().split(".")
    parts = []
    for raw in raw_parts:
        raw = raw.strip()
        if raw == "":
            parts.append(0)
            continue
        try:
            parts.append(int(raw))
        except ValueError:
            raise ValidationError(
                f"Invalid version string {current_version!r}", details={"version": current_version},
            )
    while len(parts) < 3:
        parts.append(0)
    parts[2] += 1
    return ".".join(str(p) for p in parts)


def _latest_version(document_id: int) -> DocumentVersion | None:
    return db.session.execute(
        select(DocumentVersion)
        .where(DocumentVersion.document_id == document_id)
        .order_by(DocumentVersion.created_at.desc(), DocumentVersion.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def append_version(
    document_id: int,
    content: str,
    change_log: str | None = None,
    author_id: int | None = None,
    metadata: dict | None = None,
) -> dict:
    """Append the next version of a document.

    The first version of a document is 1.0.0; every later one is the patch
    increment of the most recent version.

    Returns:
        Serialized DocumentVersion dict.

    Raises:
        NotFoundError: If the document does not exist.
        ConflictError: If MAX_APPEND_ATTEMPTS concurrent collisions in a row
                       prevented storing a unique version string.
    """
    if db.session.get(Document, document_id) is None:
        raise NotFoundError(resource="Document", resource_id=document_id)

    next_version = INITIAL_VERSION
    for attempt in range(1, MAX_APPEND_ATTEMPTS + 1):
        latest = _latest_version(document_id)
        next_version = INITIAL_VERSION if latest is None else increment_version(latest.version)

        version = DocumentVersion(
            document_id=document_id,
            version=next_version,
            content=content,
            change_log=change_log,
            meta=metadata,
            created_by_id=author_id,
        )
        db.session.add(version)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.warning(
                "Version %s of document %s already taken (attempt %s/%s)",
                next_version, document_id, attempt, MAX_APPEND_ATTEMPTS,
                extra={"document_id": document_id, "event_type": "conflict_on_create"},
            )
            continue

        logger.info(
            "DocumentVersion appended document_id=%s version=%s", document_id, next_version,
            extra={"document_id": document_id},
        )
        return version.to_dict()

    raise ConflictError(resource="DocumentVersion", field="version", value=next_version)


def list_versions(document_id: int) -> list[dict]:
    """Return a document's versions in creation order (oldest first).

    Raises:
        NotFoundError: If the document does not exist.
    """
    if db.session.get(Document, document_id) is None:
        raise NotFoundError(resource="Document", resource_id=document_id)

    versions = db.session.execute(
        select(DocumentVersion)
        .where(DocumentVersion.document_id == document_id)
        .order_by(DocumentVersion.created_at.asc(), DocumentVersion.id.asc())
    ).scalars().all()
    return [v.to_dict() for v in versions]
