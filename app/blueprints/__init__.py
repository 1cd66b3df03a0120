"""
Compliance Documentation Platform
Blueprint registry and shared request helpers.

Auth context:
    The JWT middleware puts the caller on ``g.user_id`` / ``g.organization_id``.
    When API auth is disabled (development, tests) and no token was sent,
    the helpers fall back to ``user_id`` / ``organization_id`` taken from the
    query string or JSON body.
"""

from flask import current_app, g, request

from app.core.exceptions import ValidationError


def _request_param(name: str) -> int | None:
    value = request.args.get(name, type=int)
    if value is not None:
        return value
    data = request.get_json(silent=True) or {}
    raw = data.get(name) if isinstance(data, dict) else None
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer", details={name: str(raw)})


def _context_value(name: str) -> int | None:
    value = getattr(g, name, None)
    if value is not None:
        return value
    if current_app.config.get("API_AUTH_ENABLED"):
        return None
    return _request_param(name)


def current_user_id(required: bool = True) -> int | None:
    """Acting user: token subject, else ``user_id`` param when auth is off."""
    user_id = _context_value("user_id")
    if user_id is None and required:
        raise ValidationError("user_id is required", details={"user_id": "required"})
    return user_id


def current_organization_id(required: bool = True) -> int | None:
    """Caller's organization: token claim, else ``organization_id`` param when auth is off."""
    organization_id = _context_value("organization_id")
    if organization_id is None and required:
        raise ValidationError("organization_id is required", details={"organization_id": "required"})
    return organization_id


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
