"""
tests/test_auth_service.py -- Login, registration and caller queries.

Covers:
  - successful login returns an Identity and a session token with role claims
  - bad password reports remaining attempts; unknown user gets the same message
  - fifth failure locks out; a correct password during lockout is still refused
  - register then login round trip carries exactly the User role
  - deactivated accounts cannot log in and drop out of current_user()
"""

from __future__ import annotations

import pytest
from conftest import PASSWORD

from auth.models import RoleName
from auth.rate_limit import LoginRateLimiter
from auth.service import AuthService
from auth.tokens import decode_session_token, identity_from_payload
from cache.store import MemoryCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000_000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(user_store, clock) -> AuthService:
    return AuthService(user_store, LoginRateLimiter(MemoryCache(clock=clock), clock=clock))


class TestLogin:
    def test_success_returns_identity_and_token(self, service, make_user) -> None:
        alice = make_user("alice")
        result = service.login("alice", PASSWORD, "10.0.0.1")
        assert result.ok
        assert result.identity.user_id == alice.user_id
        assert result.identity.roles == (RoleName.USER,)
        payload = decode_session_token(result.token)
        assert payload["sub"] == "alice"
        assert payload["roles"] == [RoleName.USER]
        assert identity_from_payload(payload) == result.identity

    def test_success_records_last_login(self, service, make_user, user_store) -> None:
        alice = make_user("alice")
        service.login("alice", PASSWORD, "10.0.0.1")
        assert user_store.get_by_id(alice.user_id).last_login is not None

    def test_bad_password_reports_remaining_attempts(self, service, make_user) -> None:
        make_user("alice")
        result = service.login("alice", "wrong", "10.0.0.1")
        assert not result.ok
        assert result.reason == "bad_credentials"
        assert "(4 attempt(s) remaining)" in result.error

    def test_unknown_user_gets_same_message(self, service) -> None:
        result = service.login("ghost", "whatever", "10.0.0.1")
        assert result.reason == "bad_credentials"
        assert result.error.startswith("Invalid username or password.")

    def test_fifth_failure_reports_attempts_exceeded(self, service, make_user) -> None:
        make_user("alice")
        for _ in range(4):
            service.login("alice", "wrong", "10.0.0.1")
        result = service.login("alice", "wrong", "10.0.0.1")
        assert result.reason == "attempts_exceeded"
        assert "15 minute(s)" in result.error

    def test_correct_password_refused_while_locked(self, service, make_user) -> None:
        make_user("alice")
        for _ in range(5):
            service.login("alice", "wrong", "10.0.0.1")
        result = service.login("alice", PASSWORD, "10.0.0.1")
        assert not result.ok
        assert result.reason == "locked_out"
        assert "Try again in 15 minute(s)" in result.error

    def test_lockout_expires(self, service, make_user, clock) -> None:
        make_user("alice")
        for _ in range(5):
            service.login("alice", "wrong", "10.0.0.1")
        clock.now += 15 * 60
        assert service.login("alice", PASSWORD, "10.0.0.1").ok

    def test_lockout_is_per_ip(self, service, make_user) -> None:
        make_user("alice")
        for _ in range(5):
            service.login("alice", "wrong", "10.0.0.1")
        assert service.login("alice", PASSWORD, "10.0.0.2").ok

    def test_success_resets_failure_count(self, service, make_user) -> None:
        make_user("alice")
        for _ in range(3):
            service.login("alice", "wrong", "10.0.0.1")
        service.login("alice", PASSWORD, "10.0.0.1")
        result = service.login("alice", "wrong", "10.0.0.1")
        assert "(4 attempt(s) remaining)" in result.error

    def test_inactive_user_cannot_log_in(self, service, make_user, user_store) -> None:
        alice = make_user("alice")
        user_store.update_user(alice.user_id, is_active=False)
        assert service.login("alice", PASSWORD, "10.0.0.1").reason == "bad_credentials"


class TestRegister:
    def test_register_then_login_round_trip(self, service) -> None:
        user = service.register("newbie", "newbie@example.com", "Str0ng!pass", "Newbie")
        assert user is not None
        result = service.login("newbie", "Str0ng!pass", "10.0.0.9")
        assert result.ok
        assert service.current_user_id(result.identity) == user.id
        assert result.identity.roles == (RoleName.USER,)

    def test_duplicate_username_returns_none(self, service, make_user) -> None:
        make_user("alice")
        assert service.register("alice", "other@example.com", "Str0ng!pass", "Alice 2") is None

    def test_duplicate_email_returns_none(self, service, make_user) -> None:
        make_user("alice")
        assert service.register("alice2", "alice@example.com", "Str0ng!pass", "Alice 2") is None

    def test_bootstrap_admin_is_idempotent(self, service, user_store) -> None:
        first = service.bootstrap_admin("root", "root@example.com", "Adm1n!pass", "Root")
        assert first is not None
        assert user_store.has_role(first.id, RoleName.ADMIN)
        assert service.bootstrap_admin("root", "root@example.com", "Adm1n!pass", "Root") is None


class TestCallerQueries:
    def test_anonymous_caller(self, service) -> None:
        assert service.current_user(None) is None
        assert service.current_user_id(None) is None
        assert service.is_authenticated(None) is False
        assert service.is_admin(None) is False
        assert service.current_display_name(None) is None

    def test_current_user_rejoins_roles(self, service, make_user, user_store) -> None:
        alice = make_user("alice")
        sub_admin = user_store.get_role_by_name(RoleName.SUB_ADMIN)
        user_store.assign_role(alice.user_id, sub_admin.id)
        current = service.current_user(alice)
        assert set(current.roles) == {RoleName.USER, RoleName.SUB_ADMIN}

    def test_current_user_drops_deactivated_account(self, service, make_user, user_store) -> None:
        alice = make_user("alice")
        user_store.update_user(alice.user_id, is_active=False)
        assert service.current_user(alice) is None

    def test_display_name_and_admin_flag(self, service, make_user) -> None:
        boss = make_user("boss", RoleName.ADMIN, RoleName.USER)
        assert service.is_admin(boss) is True
        assert service.current_display_name(boss) == "Boss"
