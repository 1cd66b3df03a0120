"""Settings service: typed key/value platform settings.

Values are stored as text. ``type`` decides how a value is parsed on read:

    number   → float
    boolean  → value.lower() == "true"
    json     → json.loads(value), raw string if it does not parse
    string   → raw string
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.settings import SETTING_TYPES, Setting

logger = logging.getLogger(__name__)

COMPANY_CONTEXT_KEY = "company_context"
AI_CATEGORY = "ai"

DEFAULT_SETTINGS = [
    {
        "key": "company_context",
        "value": "",
        "description": "Company context information for AI-generated content",
        "category": "ai",
        "type": "string",
    },
    {
        "key": "ai_model",
        "value": "gpt-4",
        "description": "AI model to use for content generation",
        "category": "ai",
        "type": "string",
    },
    {
        "key": "ai_temperature",
        "value": "0.3",
        "description": "AI temperature setting for content generation",
        "category": "ai",
        "type": "number",
    },
    {
        "key": "ai_max_tokens",
        "value": "4000",
        "description": "Maximum tokens for AI content generation",
        "category": "ai",
        "type": "number",
    },
    {
        "key": "document_retention_days",
        "value": "2555",  # 7 years
        "description": "Number of days to retain documents",
        "category": "documents",
        "type": "number",
    },
]

_UPDATABLE_FIELDS = ("value", "description", "type", "category")


def parse_value(value: str, type_: str):
    if type_ == "number":
        try:
            return float(value)
        except (TypeError, ValueError):
            return float("nan")
    if type_ == "boolean":
        return str(value).lower() == "true"
    if type_ == "json":
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            return value
    return value


def _find(key: str) -> Setting | None:
    return db.session.execute(select(Setting).where(Setting.key == key)).scalar_one_or_none()


def _get(key: str) -> Setting:
    setting = _find(key)
    if setting is None:
        raise NotFoundError(resource="Setting", resource_id=key)
    return setting


def _validate_type(type_) -> str:
    if type_ not in SETTING_TYPES:
        raise ValidationError(
            f"type must be one of: {', '.join(SETTING_TYPES)}", details={"type": type_},
        )
    return type_


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


# ── Reads ────────────────────────────────────────────────────────────────────


def list_settings(category: str | None = None) -> list[dict]:
    """All settings ordered by category then key, or one category ordered by key."""
    stmt = select(Setting)
    if category:
        stmt = stmt.where(Setting.category == category).order_by(Setting.key)
    else:
        stmt = stmt.order_by(Setting.category, Setting.key)
    return [s.to_dict() for s in db.session.execute(stmt).scalars().all()]


def get_setting(key: str) -> dict:
    return _get(key).to_dict()


def get_value(key: str):
    """Parsed value of ``key``.

    Raises:
        NotFoundError: If the key does not exist.
    """
    setting = _get(key)
    return parse_value(setting.value, setting.type)


def get_value_or_default(key: str, default=None):
    try:
        return get_value(key)
    except NotFoundError:
        return default


# ── Writes ───────────────────────────────────────────────────────────────────


def create_setting(data: dict) -> dict:
    """Create a setting.

    Raises:
        ValidationError: Missing key or unknown type.
        ConflictError: The key already exists.
    """
    key = (data.get("key") or "").strip()
    if not key:
        raise ValidationError("key is required", details={"key": "required"})
    if _find(key) is not None:
        raise ConflictError(resource="Setting", field="key", value=key)

    setting = Setting(
        key=key,
        value=_as_text(data.get("value")),
        description=data.get("description") or None,
        type=_validate_type(data.get("type") or "string"),
        category=data.get("category") or "general",
    )
    db.session.add(setting)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(resource="Setting", field="key", value=key)

    logger.info("Setting created key=%s", key)
    return setting.to_dict()


def update_setting(key: str, data: dict) -> dict:
    setting = _get(key)
    for field in _UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == "type":
            value = _validate_type(value)
        elif field == "value":
            value = _as_text(value)
        setattr(setting, field, value)
    db.session.commit()
    logger.info("Setting updated key=%s", key)
    return setting.to_dict()


def upsert_setting(key: str, value, **options) -> dict:
    """Update ``key`` when present, create it otherwise."""
    if _find(key) is not None:
        return update_setting(key, {"value": value, **options})
    return create_setting({"key": key, "value": value, **options})


def delete_setting(key: str) -> None:
    setting = _get(key)
    db.session.delete(setting)
    db.session.commit()
    logger.info("Setting deleted key=%s", key)


# ── AI helpers ───────────────────────────────────────────────────────────────


def get_company_context() -> str:
    return get_value_or_default(COMPANY_CONTEXT_KEY, "")


def set_company_context(context: str) -> dict:
    return upsert_setting(
        COMPANY_CONTEXT_KEY,
        context,
        description="Company context information for AI-generated content",
        category=AI_CATEGORY,
        type="string",
    )


def get_ai_settings() -> dict:
    """Every ``ai`` category setting as ``{key: parsed value}``."""
    rows = db.session.execute(
        select(Setting).where(Setting.category == AI_CATEGORY).order_by(Setting.key)
    ).scalars().all()
    return {s.key: parse_value(s.value, s.type) for s in rows}


def ensure_default_settings(definitions: list[dict] | None = None) -> int:
    """Create missing default settings; existing keys are left untouched.

    Returns:
        Number of settings created.
    """
    created = 0
    for definition in definitions or DEFAULT_SETTINGS:
        if _find(definition["key"]) is not None:
            continue
        try:
            create_setting(definition)
        except ConflictError:
            # Created concurrently.
            continue
        created += 1
    if created:
        logger.info("Default settings seeded: %s created", created)
    return created
