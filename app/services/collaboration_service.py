"""Collaboration service: threaded comments on documents.

A comment may carry a text selection anchor and may reply to another
comment of the same document. Listings return top-level comments with
their direct replies only.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.exceptions import InvalidReferenceError, NotFoundError, ValidationError
from app.models import db
from app.models.collaboration import Comment
from app.models.document import Document
from app.models.organization import User

logger = logging.getLogger(__name__)

_SELECTION_KEYS = ("start", "end", "selected_text")


def _get_document(document_id: int) -> Document:
    document = db.session.get(Document, document_id)
    if document is None:
        raise NotFoundError(resource="Document", resource_id=document_id)
    return document


def _get_comment(comment_id: int) -> Comment:
    comment = db.session.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError(resource="Comment", resource_id=comment_id)
    return comment


def _clean_selection(selection):
    """Return (start, end, selected_text) or (None, None, None).

    A selection is all-or-nothing: every key present, 0 <= start <= end.
    """
    if not selection:
        return None, None, None
    if not isinstance(selection, dict):
        raise ValidationError("selection must be an object")

    missing = [k for k in _SELECTION_KEYS if selection.get(k) is None]
    if missing:
        raise ValidationError(
            "selection requires start, end and selected_text",
            details={"missing": missing},
        )
    try:
        start = int(selection["start"])
        end = int(selection["end"])
    except (TypeError, ValueError):
        raise ValidationError("selection start/end must be integers")
    if start < 0 or start > end:
        raise ValidationError(
            "selection must satisfy 0 <= start <= end",
            details={"start": start, "end": end},
        )
    return start, end, str(selection["selected_text"])


def add_comment(
    document_id: int,
    author_id: int,
    content: str,
    selection: dict | None = None,
    parent_comment_id: int | None = None,
) -> dict:
    """Add a comment (or a reply) to a document.

    Raises:
        NotFoundError: Document, author or parent comment does not exist.
        ValidationError: Empty content or malformed selection.
        InvalidReferenceError: Parent comment belongs to another document.
    """
    document = _get_document(document_id)
    author = db.session.get(User, author_id)
    if author is None:
        raise NotFoundError(resource="User", resource_id=author_id)

    content = (content or "").strip()
    if not content:
        raise ValidationError("content is required", details={"content": "required"})

    start, end, selected_text = _clean_selection(selection)

    parent = None
    if parent_comment_id is not None:
        parent = _get_comment(parent_comment_id)
        if parent.document_id != document.id:
            raise InvalidReferenceError(
                "Parent comment belongs to another document",
                details={
                    "parent_comment_id": parent.id,
                    "parent_document_id": parent.document_id,
                    "document_id": document.id,
                },
            )

    comment = Comment(
        content=content,
        selection_start=start,
        selection_end=end,
        selected_text=selected_text,
        author_id=author.id,
        document_id=document.id,
        parent_comment_id=parent.id if parent else None,
    )
    db.session.add(comment)
    db.session.commit()
    logger.info(
        "Comment added id=%s document_id=%s reply_to=%s", comment.id, document.id, comment.parent_comment_id,
        extra={"document_id": document.id, "user_id": author.id},
    )
    return comment.to_dict()


def list_comments(document_id: int) -> list[dict]:
    """Top-level comments in creation order, each with its direct replies."""
    _get_document(document_id)
    comments = db.session.execute(
        select(Comment)
        .where(Comment.document_id == document_id, Comment.parent_comment_id.is_(None))
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    ).scalars().all()
    return [c.to_dict(include_replies=True) for c in comments]


def get_comment(comment_id: int) -> dict:
    return _get_comment(comment_id).to_dict(include_replies=True)


def resolve_comment(comment_id: int) -> dict:
    """Flip the comment's resolved flag."""
    comment = _get_comment(comment_id)
    comment.is_resolved = not comment.is_resolved
    db.session.commit()
    logger.info(
        "Comment %s resolved=%s", comment.id, comment.is_resolved,
        extra={"document_id": comment.document_id},
    )
    return comment.to_dict()
