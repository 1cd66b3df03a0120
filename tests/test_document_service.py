"""
Tests for the document store service.

Covers:
  - create_document: initial 1.0.0 version with "Initial version" log
  - create_document: reference and field validation
  - update_document: content change appends a version, change_log default
  - update_document: metadata / title / status edits append nothing
  - update_document: framework change verified
  - update_document: version append failure → PartialFailureError
  - remove_document: versions, comments and collaborator rows removed
  - list_all: updated_at desc, organization / framework filters
  - add_collaborator / remove_collaborator: idempotent set semantics
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import NotFoundError, PartialFailureError, ValidationError
from app.models import db
from app.models.collaboration import Comment
from app.models.document import Document, DocumentCollaborator, DocumentVersion
from app.services import collaboration_service, document_service, versioning


def _payload(organization, framework, **overrides):
    data = {
        "title": "Information Security Policy",
        "content": "<h1>Policy</h1>",
        "framework_id": framework.id,
        "organization_id": organization.id,
    }
    data.update(overrides)
    return data


@pytest.fixture()
def document(organization, framework, user) -> dict:
    return document_service.create_document(_payload(organization, framework), author_id=user.id)


# ── create_document ───────────────────────────────────────────────────────────


class TestCreateDocument:
    def test_creates_initial_version(self, document, user):
        assert document["status"] == "draft"
        assert document["progress"] == 0
        assert document["created_by"]["id"] == user.id
        assert len(document["versions"]) == 1

        initial = document["versions"][0]
        assert initial["version"] == "1.0.0"
        assert initial["change_log"] == "Initial version"
        assert initial["content"] == "<h1>Policy</h1>"

    def test_metadata_round_trips(self, organization, framework, user):
        result = document_service.create_document(
            _payload(organization, framework, metadata={"ai_generated": True}), author_id=user.id,
        )
        assert result["metadata"] == {"ai_generated": True}

    def test_unknown_author(self, organization, framework):
        with pytest.raises(NotFoundError, match="User"):
            document_service.create_document(_payload(organization, framework), author_id=999)

    def test_unknown_framework(self, organization, framework, user):
        with pytest.raises(NotFoundError, match="Framework"):
            document_service.create_document(
                _payload(organization, framework, framework_id=999), author_id=user.id,
            )

    def test_unknown_organization(self, organization, framework, user):
        with pytest.raises(NotFoundError, match="Organization"):
            document_service.create_document(
                _payload(organization, framework, organization_id=999), author_id=user.id,
            )

    @pytest.mark.parametrize("overrides", [
        {"title": ""},
        {"content": None},
        {"status": "final"},
        {"progress": 101},
        {"progress": -1},
        {"metadata": ["not", "a", "dict"]},
        {"framework_id": None},
    ])
    def test_invalid_input(self, organization, framework, user, overrides):
        with pytest.raises(ValidationError):
            document_service.create_document(_payload(organization, framework, **overrides), author_id=user.id)
        assert Document.query.count() == 0


# ── update_document ───────────────────────────────────────────────────────────


class TestUpdateDocument:
    def test_content_change_appends_version(self, document, user):
        result = document_service.update_document(
            document["id"], {"content": "<h1>Policy v2</h1>", "change_log": "Added scope"}, user.id,
        )

        versions = result["versions"]
        assert [v["version"] for v in versions] == ["1.0.0", "1.0.1"]
        assert versions[-1]["change_log"] == "Added scope"
        assert versions[-1]["content"] == "<h1>Policy v2</h1>"

    def test_default_change_log(self, document):
        result = document_service.update_document(document["id"], {"content": "changed"})
        assert result["versions"][-1]["change_log"] == "Document updated"

    def test_version_sequence(self, document):
        for i in range(1, 4):
            document_service.update_document(document["id"], {"content": f"revision {i}"})

        versions = versioning.list_versions(document["id"])
        assert [v["version"] for v in versions] == ["1.0.0", "1.0.1", "1.0.2", "1.0.3"]

    @pytest.mark.parametrize("patch", [
        {"metadata": {"reviewed": True}},
        {"title": "Renamed policy"},
        {"status": "in_review", "progress": 50},
        {"content": "<h1>Policy</h1>"},
        {"content": None},
    ])
    def test_non_content_edits_append_nothing(self, document, patch):
        document_service.update_document(document["id"], patch)

        assert DocumentVersion.query.filter_by(document_id=document["id"]).count() == 1

    def test_fields_are_merged(self, document):
        result = document_service.update_document(
            document["id"], {"title": "Renamed", "status": "approved", "metadata": {"k": "v"}},
        )

        assert result["title"] == "Renamed"
        assert result["status"] == "approved"
        assert result["metadata"] == {"k": "v"}
        assert result["content"] == "<h1>Policy</h1>"

    def test_immutable_fields_ignored(self, document, other_user):
        result = document_service.update_document(
            document["id"], {"organization_id": 999, "created_by_id": other_user.id},
        )

        assert result["organization_id"] == document["organization_id"]
        assert result["created_by_id"] == document["created_by_id"]

    def test_framework_change_verified(self, document, make_framework):
        gdpr = make_framework("GDPR")

        assert document_service.update_document(document["id"], {"framework_id": gdpr.id})["framework_id"] == gdpr.id
        with pytest.raises(NotFoundError):
            document_service.update_document(document["id"], {"framework_id": 999})

    def test_unknown_document(self):
        with pytest.raises(NotFoundError):
            document_service.update_document(999, {"title": "x"})

    def test_version_append_failure_is_partial(self, document, monkeypatch):
        def _boom(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(versioning, "append_version", _boom)

        with pytest.raises(PartialFailureError) as exc_info:
            document_service.update_document(document["id"], {"content": "new body"})

        err = exc_info.value
        assert err.side_effect == "version_append"
        assert err.entity["content"] == "new body"
        assert db.session.get(Document, document["id"]).content == "new body"
        assert DocumentVersion.query.filter_by(document_id=document["id"]).count() == 1


# ── remove / find / list ──────────────────────────────────────────────────────


class TestRemoveAndRead:
    def test_remove_cascades(self, document, user, other_user):
        document_service.update_document(document["id"], {"content": "v2"})
        document_service.add_collaborator(document["id"], other_user.id)
        parent = collaboration_service.add_comment(document["id"], user.id, "Looks good")
        collaboration_service.add_comment(document["id"], other_user.id, "Thanks", parent_comment_id=parent["id"])

        document_service.remove_document(document["id"])

        assert db.session.get(Document, document["id"]) is None
        assert DocumentVersion.query.count() == 0
        assert Comment.query.count() == 0
        assert DocumentCollaborator.query.count() == 0

    def test_remove_unknown(self):
        with pytest.raises(NotFoundError):
            document_service.remove_document(999)

    def test_find_one(self, document):
        result = document_service.find_one(document["id"])
        assert result["title"] == "Information Security Policy"
        assert result["last_updated"] == "Today"
        assert [v["version"] for v in result["versions"]] == ["1.0.0"]

    def test_find_one_unknown(self):
        with pytest.raises(NotFoundError):
            document_service.find_one(999)

    def test_list_all_most_recent_first(self, organization, framework, user):
        older = document_service.create_document(_payload(organization, framework, title="Older"), user.id)
        newer = document_service.create_document(_payload(organization, framework, title="Newer"), user.id)

        assert [d["id"] for d in document_service.list_all()] == [newer["id"], older["id"]]

        document_service.update_document(older["id"], {"title": "Older, edited"})
        assert [d["id"] for d in document_service.list_all()] == [older["id"], newer["id"]]

    def test_list_all_filters(self, document, organization, user, make_framework):
        gdpr = make_framework("GDPR")
        other = document_service.create_document(
            {"title": "DPIA", "content": "", "framework_id": gdpr.id, "organization_id": organization.id},
            user.id,
        )

        assert [d["id"] for d in document_service.list_all(framework_id=gdpr.id)] == [other["id"]]
        assert len(document_service.list_all(organization_id=organization.id)) == 2
        assert document_service.list_all(organization_id=organization.id + 1) == []


# ── Collaborators ─────────────────────────────────────────────────────────────


class TestCollaborators:
    def test_add_is_idempotent(self, document, other_user):
        document_service.add_collaborator(document["id"], other_user.id)
        result = document_service.add_collaborator(document["id"], other_user.id)

        assert [c["id"] for c in result["collaborators"]] == [other_user.id]
        assert DocumentCollaborator.query.count() == 1

    def test_remove_is_idempotent(self, document, other_user):
        document_service.add_collaborator(document["id"], other_user.id)
        document_service.remove_collaborator(document["id"], other_user.id)
        result = document_service.remove_collaborator(document["id"], other_user.id)

        assert result["collaborators"] == []

    def test_collaborator_changes_append_no_version(self, document, other_user):
        document_service.add_collaborator(document["id"], other_user.id)
        document_service.remove_collaborator(document["id"], other_user.id)

        assert DocumentVersion.query.filter_by(document_id=document["id"]).count() == 1

    def test_unknown_user(self, document):
        with pytest.raises(NotFoundError, match="User"):
            document_service.add_collaborator(document["id"], 999)

    def test_unknown_document(self, other_user):
        with pytest.raises(NotFoundError, match="Document"):
            document_service.add_collaborator(999, other_user.id)
