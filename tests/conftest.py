"""
Shared pytest fixtures for the Compliance Documentation Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - organization / user / framework / progress: pre-created domain rows
"""

import pytest

from app import create_app
from app.models import db as _db
from app.models.compliance import ComplianceProgress, Framework
from app.models.organization import Organization, User


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Domain fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def organization() -> Organization:
    org = Organization(name="Acme Payments", industry="fintech")
    _db.session.add(org)
    _db.session.commit()
    return org


@pytest.fixture()
def user(organization) -> User:
    u = User(
        organization_id=organization.id,
        email="jane.doe@acme.test",
        first_name="Jane",
        last_name="Doe",
        role="compliance_officer",
    )
    _db.session.add(u)
    _db.session.commit()
    return u


@pytest.fixture()
def other_user(organization) -> User:
    u = User(
        organization_id=organization.id,
        email="sam.smith@acme.test",
        first_name="Sam",
        last_name="Smith",
    )
    _db.session.add(u)
    _db.session.commit()
    return u


@pytest.fixture()
def make_framework():
    """Factory: create and commit a Framework by name."""

    def _make(name="SOC2", display_name=None) -> Framework:
        fw = Framework(
            name=name,
            display_name=display_name or name,
            description=f"{name} framework",
            categories=["Security"],
        )
        _db.session.add(fw)
        _db.session.commit()
        return fw

    return _make


@pytest.fixture()
def framework(make_framework) -> Framework:
    return make_framework("SOC2")


@pytest.fixture()
def progress(organization, framework) -> ComplianceProgress:
    p = ComplianceProgress(organization_id=organization.id, framework_id=framework.id)
    _db.session.add(p)
    _db.session.commit()
    return p
