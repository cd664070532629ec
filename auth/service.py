"""
auth/service.py -- Login, registration and "who is the caller" queries.

Every method takes the caller explicitly. Nothing here reads request state:
the API layer decodes the session cookie into an Identity (or None) and
passes it in.

Failure handling: bad credentials, lockouts and duplicate registrations are
returned as values (LoginResult with a message, or None). Only store faults
raise.

Login order matters:
  1. lockout check -- a locked key gets no bcrypt work at all
  2. active-user lookup
  3. bcrypt verify (against a dummy hash if the user is missing)
  4. success: clear throttle state, load roles, sign the session token
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Literal

from sqlalchemy.exc import IntegrityError

from auth.models import Identity, RoleName, User
from auth.rate_limit import LoginRateLimiter, login_key
from auth.store import UserStore
from auth.tokens import clear_session_cookie, create_session_token, equalize_timing, hash_password, verify_password

logger = logging.getLogger("forum.auth")

FailureReason = Literal["bad_credentials", "locked_out", "attempts_exceeded"]


@dataclass(frozen=True)
class LoginResult:
    identity: Identity | None = None
    token: str | None = None
    error: str | None = None
    reason: FailureReason | None = None

    @property
    def ok(self) -> bool:
        return self.identity is not None


class AuthService:
    def __init__(self, store: UserStore, limiter: LoginRateLimiter) -> None:
        self.store = store
        self.limiter = limiter

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    def login(self, username: str, password: str, client_ip: str | None = None) -> LoginResult:
        key = login_key(username, client_ip)

        locked, remaining = self.limiter.is_locked_out(key)
        if locked:
            minutes = max(math.ceil(remaining.total_seconds() / 60), 1)
            return LoginResult(
                error=f"Login is temporarily locked. Try again in {minutes} minute(s).",
                reason="locked_out",
            )

        user = self.store.get_active_by_username(username)
        if user is None:
            equalize_timing(password)
            verified = False
        else:
            verified = verify_password(password, user.hashed_password)

        if not verified:
            attempts = self.limiter.record_failure(key)
            if attempts >= self.limiter.max_attempts:
                logger.warning("Login locked out for %r from %s after %d failures", username, client_ip, attempts)
                return LoginResult(
                    error=(
                        "Too many failed login attempts. "
                        f"Try again in {self.limiter.lockout_minutes} minute(s)."
                    ),
                    reason="attempts_exceeded",
                )
            logger.info("Failed login for %r from %s (attempt %d)", username, client_ip, attempts)
            return LoginResult(
                error=(
                    "Invalid username or password. "
                    f"({self.limiter.remaining_attempts(attempts)} attempt(s) remaining)"
                ),
                reason="bad_credentials",
            )

        self.limiter.reset(key)
        self.store.update_last_login(user.id)
        identity = Identity.from_user(user)
        logger.info("User %r logged in from %s", username, client_ip)
        return LoginResult(identity=identity, token=create_session_token(identity))

    def logout(self, response) -> None:
        """Destroy the session credential. Safe to call without one."""
        clear_session_cookie(response)

    # ------------------------------------------------------------------
    # Caller queries
    # ------------------------------------------------------------------

    def current_user(self, identity: Identity | None) -> Identity | None:
        """Re-resolve the caller against the store, with roles re-joined.

        Returns None for anonymous callers and for accounts that were
        deleted or deactivated after the session was issued.
        """
        if identity is None:
            return None
        user = self.store.get_with_roles(identity.user_id)
        if user is None or not user.is_active:
            return None
        return Identity.from_user(user)

    def current_user_id(self, identity: Identity | None) -> int | None:
        return identity.user_id if identity is not None else None

    def is_authenticated(self, identity: Identity | None) -> bool:
        return identity is not None

    def is_admin(self, identity: Identity | None) -> bool:
        return identity is not None and identity.is_admin

    def current_display_name(self, identity: Identity | None) -> str | None:
        return identity.display_name if identity is not None else None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str, display_name: str) -> User | None:
        """Create an account with the default User role. Does not log in.

        Returns None if the username or email is already taken.
        """
        if self.store.exists_username_or_email(username, email):
            return None
        user = User(
            username=username,
            email=email,
            display_name=display_name,
            hashed_password=hash_password(password),
        )
        try:
            user.id = self.store.create_user(user, role_names=[RoleName.USER])
        except IntegrityError:
            return None
        user.roles = [RoleName.USER]
        logger.info("Registered user %r (id=%d)", username, user.id)
        return user

    def bootstrap_admin(self, username: str, email: str, password: str, display_name: str) -> User | None:
        """Create the first Admin account if `username` does not exist yet.

        Returns the new user, or None when the account was already there.
        """
        if self.store.get_by_username(username) is not None:
            return None
        user = User(
            username=username,
            email=email,
            display_name=display_name,
            hashed_password=hash_password(password),
        )
        try:
            user.id = self.store.create_user(user, role_names=[RoleName.ADMIN, RoleName.USER])
        except IntegrityError:
            return None
        user.roles = [RoleName.ADMIN, RoleName.USER]
        logger.info("Bootstrap admin account %r created", username)
        return user
