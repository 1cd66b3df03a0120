"""
JWT Auth Middleware: Parses JWT from Authorization header, sets g.user_id / g.organization_id.

Modes:
  API_AUTH_ENABLED = false (dev/test)  →  a valid Bearer token still populates
                                          g.*; without one, blueprints fall back
                                          to user_id / organization_id params.
  API_AUTH_ENABLED = true              →  /api/v1/* requests without a valid
                                          access token get 401.
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from app.services.jwt_service import decode_access_token
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        # Clear auth context
        g.user_id = None
        g.organization_id = None
        g.authenticated = False

        path = request.path
        if not path.startswith("/api/v1/"):
            return None
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return None
        if request.method == "OPTIONS":
            return None

        enforce = current_app.config.get("API_AUTH_ENABLED", False)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            if enforce:
                return api_error(E.UNAUTHORIZED, "Authentication required")
            return None

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            if enforce:
                return api_error(E.UNAUTHORIZED, "Token expired")
            return None
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected access token: %s", exc, extra={"event_type": "auth_invalid_token"})
            if enforce:
                return api_error(E.UNAUTHORIZED, "Invalid token")
            return None

        g.user_id = payload["sub"]
        g.organization_id = payload.get("organization_id")
        g.authenticated = True
        return None
