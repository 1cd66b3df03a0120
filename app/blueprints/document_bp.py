"""Document blueprint: compliance documents, collaborators and versions.

URL prefix: /api/v1/documents

Routes:
    GET    /api/v1/documents                                   — list (framework_id filter)
    POST   /api/v1/documents                                   — create (+ version 1.0.0)
    GET    /api/v1/documents/<id>                              — single with versions
    PATCH  /api/v1/documents/<id>                              — partial update
    DELETE /api/v1/documents/<id>                              — hard delete
    POST   /api/v1/documents/<id>/collaborators/<user_id>      — add collaborator
    DELETE /api/v1/documents/<id>/collaborators/<user_id>      — remove collaborator
    GET    /api/v1/documents/<id>/versions                     — version history
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from app.blueprints import current_organization_id, current_user_id, json_body
from app.services import document_service, versioning
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

document_bp = Blueprint("document", __name__, url_prefix="/api/v1/documents")
register_error_handlers(document_bp)


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@document_bp.route("", methods=["GET"])
def list_documents():
    """Documents of the caller's organization, most recently updated first.

    Query params:
        organization_id: required when no token is sent
        framework_id:    optional filter
    """
    result = document_service.list_all(
        organization_id=current_organization_id(),
        framework_id=request.args.get("framework_id", type=int),
    )
    return jsonify(result), 200


@document_bp.route("", methods=["POST"])
def create_document():
    """Create a document.

    Body: { title, content, framework_id, organization_id?, description?,
            status?, progress?, template_id?, metadata? }
    """
    data = json_body()
    data["organization_id"] = current_organization_id()
    result = document_service.create_document(data, author_id=current_user_id())
    return jsonify(result), 201


# ---------------------------------------------------------------------------
# Single resource
# ---------------------------------------------------------------------------


@document_bp.route("/<int:document_id>", methods=["GET"])
def get_document(document_id: int):
    return jsonify(document_service.find_one(document_id)), 200


@document_bp.route("/<int:document_id>", methods=["PATCH"])
def update_document(document_id: int):
    """Body: any of { title, description, content, status, progress,
    template_id, metadata, framework_id, change_log }"""
    result = document_service.update_document(
        document_id, json_body(), editor_id=current_user_id(required=False),
    )
    return jsonify(result), 200


@document_bp.route("/<int:document_id>", methods=["DELETE"])
def delete_document(document_id: int):
    document_service.remove_document(document_id)
    return "", 204


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@document_bp.route("/<int:document_id>/collaborators/<int:user_id>", methods=["POST"])
def add_collaborator(document_id: int, user_id: int):
    return jsonify(document_service.add_collaborator(document_id, user_id)), 200


@document_bp.route("/<int:document_id>/collaborators/<int:user_id>", methods=["DELETE"])
def remove_collaborator(document_id: int, user_id: int):
    return jsonify(document_service.remove_collaborator(document_id, user_id)), 200


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------


@document_bp.route("/<int:document_id>/versions", methods=["GET"])
def list_versions(document_id: int):
    return jsonify(versioning.list_versions(document_id)), 200
