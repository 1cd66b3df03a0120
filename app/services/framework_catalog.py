"""Framework catalog service.

Read-mostly reference data: the regulatory frameworks an organization can
track progress against.

Seeding:
  ensure_seeded() is an idempotent upsert keyed by framework name. The
  unique constraint on frameworks.name is the guard, not a transaction:
  a concurrent seeder that wins the insert race is treated as success.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.compliance import FRAMEWORK_TYPES, Framework

logger = logging.getLogger(__name__)

DEFAULT_FRAMEWORKS: tuple[dict, ...] = (
    {
        "name": "PCI-DSS",
        "display_name": "PCI-DSS",
        "description": "Payment Card Industry Data Security Standard",
        "requirements": "Secure payment processing and cardholder data protection",
        "categories": ["Network Security", "Access Control", "Data Protection", "Monitoring"],
    },
    {
        "name": "SOC2",
        "display_name": "SOC2",
        "description": "System and Organization Controls 2",
        "requirements": "Security, availability, processing integrity, confidentiality, and privacy",
        "categories": ["Security", "Availability", "Processing Integrity", "Confidentiality", "Privacy"],
    },
    {
        "name": "GDPR",
        "display_name": "GDPR",
        "description": "General Data Protection Regulation",
        "requirements": "EU data privacy and protection requirements",
        "categories": ["Data Processing", "Consent Management", "Data Subject Rights", "Privacy by Design"],
    },
    {
        "name": "ISO27001",
        "display_name": "ISO 27001",
        "description": "Information Security Management System",
        "requirements": "International standard for information security management",
        "categories": ["Risk Management", "Security Controls", "Incident Management", "Business Continuity"],
    },
)


def _find_by_name(name: str) -> Framework | None:
    return db.session.execute(
        select(Framework).where(Framework.name == name)
    ).scalar_one_or_none()


def list_active() -> list[dict]:
    """Return every active framework in stable (id) order."""
    frameworks = db.session.execute(
        select(Framework).where(Framework.is_active.is_(True)).order_by(Framework.id)
    ).scalars().all()
    return [f.to_dict() for f in frameworks]


def get_framework(framework_id: int) -> dict:
    """Return one framework.

    Raises:
        NotFoundError: If the framework does not exist.
    """
    framework = db.session.get(Framework, framework_id)
    if framework is None:
        raise NotFoundError(resource="Framework", resource_id=framework_id)
    return framework.to_dict()


def ensure_seeded(definitions=None) -> int:
    """Create each framework definition that is not already present.

    Args:
        definitions: Iterable of dicts with name, display_name, description,
                     requirements?, categories?. Defaults to DEFAULT_FRAMEWORKS.

    Returns:
        Number of frameworks created by this call.

    Raises:
        ValidationError: If a definition's name is not a known framework type.
    """
    created = 0
    for definition in definitions if definitions is not None else DEFAULT_FRAMEWORKS:
        name = definition.get("name")
        if name not in FRAMEWORK_TYPES:
            raise ValidationError(
                f"name must be one of: {', '.join(FRAMEWORK_TYPES)}",
                details={"name": name},
            )
        if _find_by_name(name) is not None:
            continue

        framework = Framework(
            name=name,
            display_name=definition.get("display_name") or name,
            description=definition.get("description") or "",
            requirements=definition.get("requirements"),
            categories=list(definition.get("categories") or []),
            is_active=definition.get("is_active", True),
        )
        db.session.add(framework)
        try:
            db.session.commit()
        except IntegrityError:
            # Another seeder inserted the same name first: already exists.
            db.session.rollback()
            if _find_by_name(name) is None:
                raise ConflictError(resource="Framework", field="name", value=name)
            logger.info("Framework %s seeded concurrently, skipping", name)
            continue
        created += 1
        logger.info("Framework seeded name=%s", name, extra={"event_type": "framework_seeded"})

    return created
