"""
auth/dependencies.py -- FastAPI Depends() helpers for the caller identity.

The session token is looked up in priority order:
  1. "access_token" cookie -- set by POST /api/v1/auth/login.
  2. Authorization: Bearer <token> header -- API clients.

Both converge on an Identity re-resolved against the user store, so a
deactivated account or a revoked role takes effect on the next request.

get_identity() is the soft variant (returns None when anonymous).
require_identity() raises HTTP 401 when the request is not authenticated.
require_admin() additionally raises HTTP 403 unless the caller holds Admin.

Layer rule: no imports from board/ or api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Identity
from auth.tokens import SESSION_COOKIE, decode_session_token, identity_from_payload


def session_token(request: Request) -> str | None:
    token: str | None = request.cookies.get(SESSION_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def get_identity(request: Request) -> Identity | None:
    """Return the authenticated caller, or None. Never raises."""
    token = session_token(request)
    if not token:
        return None
    payload = decode_session_token(token)
    if payload is None:
        return None
    claimed = identity_from_payload(payload)
    if claimed is None:
        return None
    return request.app.state.auth_service.current_user(claimed)


def require_identity(request: Request) -> Identity:
    """Require authentication. Raises HTTP 401 if the request is anonymous.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(require_identity)): ...
    """
    identity = get_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return identity


def require_admin(request: Request) -> Identity:
    """Require the Admin role. HTTP 401 if anonymous, HTTP 403 otherwise."""
    identity = require_identity(request)
    if not identity.is_admin:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return identity


def client_ip(request: Request) -> str | None:
    """The peer address. ProxyHeadersMiddleware has already applied X-Forwarded-For
    when, and only when, the peer is a trusted proxy (Settings.forwarded_allow_ips).
    """
    return request.client.host if request.client else None
