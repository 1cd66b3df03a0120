"""
Tests for JWT access tokens and the auth middleware.

Covers:
  - generate / decode round trip keeps sub and organization_id
  - tampered and expired tokens are rejected
  - API_AUTH_ENABLED=true: missing / invalid token → 401, health exempt
  - a valid token supplies the acting user and organization
"""

import jwt as pyjwt
import pytest

from app.services import jwt_service

DOCS = "/api/v1/documents"


class TestJwtService:
    def test_round_trip(self):
        token = jwt_service.generate_access_token(7, 3)
        payload = jwt_service.decode_access_token(token)

        assert payload["sub"] == 7
        assert payload["organization_id"] == 3
        assert payload["type"] == "access"

    def test_tampered_token(self):
        token = jwt_service.generate_access_token(7, 3)
        with pytest.raises(pyjwt.InvalidTokenError):
            jwt_service.decode_access_token(token[:-2] + "xx")

    def test_expired_token(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "JWT_ACCESS_EXPIRES", -10)
        token = jwt_service.generate_access_token(7, 3)

        with pytest.raises(pyjwt.ExpiredSignatureError):
            jwt_service.decode_access_token(token)


class TestMiddleware:
    @pytest.fixture()
    def auth_enabled(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "API_AUTH_ENABLED", True)

    def test_missing_token_is_401(self, client, auth_enabled):
        res = client.get(DOCS)

        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_invalid_token_is_401(self, client, auth_enabled):
        res = client.get(DOCS, headers={"Authorization": "Bearer not-a-token"})
        assert res.status_code == 401

    def test_health_is_exempt(self, client, auth_enabled):
        assert client.get("/api/v1/health/ready").status_code == 200

    def test_request_params_ignored_when_enforced(self, client, auth_enabled, organization, user):
        token = jwt_service.generate_access_token(user.id, None)

        res = client.get(
            f"{DOCS}?organization_id={organization.id}",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert res.status_code == 422

    def test_token_supplies_context(self, client, auth_enabled, organization, framework, user):
        token = jwt_service.generate_access_token(user.id, organization.id)

        res = client.post(
            DOCS,
            json={"title": "Token Policy", "content": "body", "framework_id": framework.id},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert res.status_code == 201
        body = res.get_json()
        assert body["created_by_id"] == user.id
        assert body["organization_id"] == organization.id

    def test_token_used_without_enforcement(self, client, organization, framework, user):
        token = jwt_service.generate_access_token(user.id, organization.id)

        res = client.get(DOCS, headers={"Authorization": f"Bearer {token}"})

        assert res.status_code == 200
