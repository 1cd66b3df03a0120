"""Settings blueprint: platform key/value settings.

URL prefix: /api/v1/settings

Routes:
    GET    /api/v1/settings                        — list (optional ?category=)
    POST   /api/v1/settings                        — create
    POST   /api/v1/settings/upsert                 — update when present, else create
    POST   /api/v1/settings/initialize             — seed missing defaults
    GET    /api/v1/settings/ai                     — ai category as {key: parsed value}
    GET    /api/v1/settings/ai/company-context     — company context text
    POST   /api/v1/settings/ai/company-context     — set company context
    GET    /api/v1/settings/<key>                  — single setting with parsed value
    PUT    /api/v1/settings/<key>                  — update
    DELETE /api/v1/settings/<key>                  — delete
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from app.blueprints import json_body
from app.core.exceptions import ValidationError
from app.services import settings_service
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

settings_bp = Blueprint("settings", __name__, url_prefix="/api/v1/settings")
register_error_handlers(settings_bp)

_UPSERT_OPTIONS = ("description", "type", "category")


@settings_bp.route("", methods=["GET"])
def list_settings():
    return jsonify(settings_service.list_settings(request.args.get("category"))), 200


@settings_bp.route("", methods=["POST"])
def create_setting():
    """Body: { key, value, description?, type?, category? }"""
    return jsonify(settings_service.create_setting(json_body())), 201


@settings_bp.route("/upsert", methods=["POST"])
def upsert_setting():
    """Body: { key, value, options?: { description?, type?, category? } }"""
    data = json_body()
    key = (data.get("key") or "").strip()
    if not key:
        raise ValidationError("key is required", details={"key": "required"})
    options = data.get("options") or {}
    if not isinstance(options, dict):
        raise ValidationError("options must be an object")
    options = {k: v for k, v in options.items() if k in _UPSERT_OPTIONS}
    return jsonify(settings_service.upsert_setting(key, data.get("value"), **options)), 200


@settings_bp.route("/initialize", methods=["POST"])
def initialize_defaults():
    created = settings_service.ensure_default_settings()
    return jsonify({"created": created}), 200


# ---------------------------------------------------------------------------
# AI settings
# ---------------------------------------------------------------------------


@settings_bp.route("/ai", methods=["GET"])
def get_ai_settings():
    return jsonify(settings_service.get_ai_settings()), 200


@settings_bp.route("/ai/company-context", methods=["GET"])
def get_company_context():
    return jsonify({"context": settings_service.get_company_context()}), 200


@settings_bp.route("/ai/company-context", methods=["POST"])
def set_company_context():
    """Body: { context }"""
    context = json_body().get("context")
    if context is None:
        raise ValidationError("context is required", details={"context": "required"})
    return jsonify(settings_service.set_company_context(context)), 200


# ---------------------------------------------------------------------------
# Single setting
# ---------------------------------------------------------------------------


@settings_bp.route("/<string:key>", methods=["GET"])
def get_setting(key: str):
    result = settings_service.get_setting(key)
    result["parsed_value"] = settings_service.get_value(key)
    return jsonify(result), 200


@settings_bp.route("/<string:key>", methods=["PUT"])
def update_setting(key: str):
    """Body: any of { value, description, type, category }"""
    return jsonify(settings_service.update_setting(key, json_body())), 200


@settings_bp.route("/<string:key>", methods=["DELETE"])
def delete_setting(key: str):
    settings_service.delete_setting(key)
    return "", 204
