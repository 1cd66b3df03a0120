"""Collaboration blueprint: document comments.

URL prefix: /api/v1/collaboration

Routes:
    GET    /api/v1/collaboration/documents/<id>/comments   — top-level comments + replies
    POST   /api/v1/collaboration/documents/<id>/comments   — add comment / reply
    POST   /api/v1/collaboration/comments/<id>/resolve     — toggle resolved
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify

from app.blueprints import current_user_id, json_body
from app.services import collaboration_service
from app.utils.errors import register_error_handlers
from app.utils.helpers import parse_int_field

logger = logging.getLogger(__name__)

collaboration_bp = Blueprint("collaboration", __name__, url_prefix="/api/v1/collaboration")
register_error_handlers(collaboration_bp)


@collaboration_bp.route("/documents/<int:document_id>/comments", methods=["GET"])
def list_comments(document_id: int):
    return jsonify(collaboration_service.list_comments(document_id)), 200


@collaboration_bp.route("/documents/<int:document_id>/comments", methods=["POST"])
def add_comment(document_id: int):
    """Body: { content, selection?: {start, end, selected_text}, parent_comment_id? }"""
    data = json_body()
    result = collaboration_service.add_comment(
        document_id,
        author_id=current_user_id(),
        content=data.get("content"),
        selection=data.get("selection"),
        parent_comment_id=parse_int_field(data, "parent_comment_id", required=False),
    )
    return jsonify(result), 201


@collaboration_bp.route("/comments/<int:comment_id>/resolve", methods=["POST"])
def resolve_comment(comment_id: int):
    return jsonify(collaboration_service.resolve_comment(comment_id)), 200
