"""
Collaboration models: threaded document comments.

A comment may be anchored to a text selection (start, end, selected text;
all three or none) and may reply to another comment of the same document.
The data model allows arbitrary nesting; the API only ever resolves one hop
of replies.
"""

from datetime import datetime, timezone

from app.models import db


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    content = db.Column(db.Text, nullable=False)
    selection_start = db.Column(db.Integer, nullable=True)
    selection_end = db.Column(db.Integer, nullable=True)
    selected_text = db.Column(db.Text, nullable=True)
    is_resolved = db.Column(db.Boolean, nullable=False, default=False)

    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    document_id = db.Column(
        db.Integer, db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    parent_comment_id = db.Column(
        db.Integer, db.ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    author = db.relationship("User")
    document = db.relationship("Document", back_populates="comments")
    parent_comment = db.relationship("Comment", remote_side=[id], back_populates="replies")
    replies = db.relationship(
        "Comment", back_populates="parent_comment",
        cascade="all, delete-orphan", order_by="Comment.id",
    )

    @property
    def selection(self):
        if self.selection_start is None:
            return None
        return {
            "start": self.selection_start,
            "end": self.selection_end,
            "selected_text": self.selected_text,
        }

    def to_dict(self, include_replies=False):
        result = {
            "id": self.id,
            "content": self.content,
            "selection": self.selection,
            "is_resolved": self.is_resolved,
            "author_id": self.author_id,
            "author": self.author.to_summary() if self.author else None,
            "document_id": self.document_id,
            "parent_comment_id": self.parent_comment_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_replies:
            # One hop only: a reply's own replies are not expanded.
            result["replies"] = [r.to_dict() for r in self.replies]
        return result

    def __repr__(self):
        return f"<Comment {self.id}: doc={self.document_id}>"
