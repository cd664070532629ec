"""
auth/tokens.py -- Session tokens, password hashing, and cookie helpers.

Security design decisions:
  Session: python-jose JWT with HS256, carried in an httpOnly cookie. The
       token holds the caller's claims (user_id, username, email, display
       name, role names) so cheap checks like "is this caller an admin" never
       touch the database. Verification returns None on any failure -- the
       dependency layer treats that as anonymous.

  Sliding expiry: tokens carry iat. Once more than half of the lifetime has
       passed, needs_refresh() says so and the refresh middleware re-issues
       the cookie with the same claims and a fresh 7-day window.

  Passwords: bcrypt, used for both account passwords and the per-item
       secrets protecting anonymous posts and comments. The dummy hash lets
       the login path spend the same bcrypt work when the username does not
       exist.

  SECRET_KEY: sourced from core.config.get_settings(), validated at startup.

Layer rule: no imports from api/, board/, or cache/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import Identity
from core.config import get_settings

logger = logging.getLogger("forum.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

SESSION_COOKIE = "access_token"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes. The API layer caps password
    fields well below that.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("forum_timing_dummy")


def equalize_timing(plain: str) -> None:
    """Spend one bcrypt verification on a throwaway hash.

    Called when the username does not exist so that response time does not
    reveal which usernames are registered.
    """
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Session JWT encode / decode
# ---------------------------------------------------------------------------


def create_session_token(identity: Identity, expire_seconds: int = 0) -> str:
    """Encode a signed session token carrying the caller's claims.

    Args:
        identity:       The authenticated caller.
        expire_seconds: Lifetime in seconds. If 0 (default), uses
                        Settings.session_expire_seconds (7 days).
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.session_expire_seconds
    now = datetime.now(timezone.utc)
    payload = {
        "sub": identity.username,
        "user_id": identity.user_id,
        "email": identity.email,
        "display_name": identity.display_name,
        "roles": list(identity.roles),
        "iat": int(now.timestamp()),
        "exp": now + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> dict | None:
    """Decode and verify a session token. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "user_id" not in payload or "sub" not in payload:
        return None
    return payload


def identity_from_payload(payload: dict) -> Identity | None:
    try:
        return Identity(
            user_id=int(payload["user_id"]),
            username=str(payload["sub"]),
            email=str(payload.get("email", "")),
            display_name=str(payload.get("display_name", "")),
            roles=tuple(str(r) for r in payload.get("roles", [])),
        )
    except (KeyError, TypeError, ValueError):
        return None


def needs_refresh(payload: dict, expire_seconds: int = 0) -> bool:
    """True once more than half of the session lifetime has elapsed."""
    duration = expire_seconds if expire_seconds > 0 else _settings.session_expire_seconds
    issued_at = payload.get("iat")
    if not isinstance(issued_at, (int, float)):
        return True
    age = datetime.now(timezone.utc).timestamp() - issued_at
    return age > duration / 2


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the token expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.session_expire_seconds
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE, httponly=True, samesite="lax", secure=_settings.secure_cookies)
