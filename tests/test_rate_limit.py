"""
tests/test_rate_limit.py -- Failed-login counting and lockout policy.
"""

from __future__ import annotations

from datetime import timedelta

from auth.rate_limit import LoginRateLimiter, login_key
from cache.store import MemoryCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000_000.0

    def __call__(self) -> float:
        return self.now


def _limiter(clock: FakeClock) -> LoginRateLimiter:
    return LoginRateLimiter(MemoryCache(clock=clock), clock=clock)


def test_login_key_combines_username_and_ip() -> None:
    assert login_key("alice", "10.0.0.1") == "alice:10.0.0.1"
    assert login_key("alice", None) == "alice:unknown"


class TestLockout:
    def test_not_locked_initially(self) -> None:
        locked, remaining = _limiter(FakeClock()).is_locked_out("alice:ip")
        assert locked is False
        assert remaining == timedelta(0)

    def test_four_failures_do_not_lock(self) -> None:
        limiter = _limiter(FakeClock())
        for _ in range(4):
            limiter.record_failure("alice:ip")
        assert limiter.is_locked_out("alice:ip")[0] is False

    def test_fifth_failure_locks_for_fifteen_minutes(self) -> None:
        clock = FakeClock()
        limiter = _limiter(clock)
        counts = [limiter.record_failure("alice:ip") for _ in range(5)]
        assert counts == [1, 2, 3, 4, 5]
        locked, remaining = limiter.is_locked_out("alice:ip")
        assert locked is True
        assert remaining == timedelta(minutes=15)

    def test_lockout_clears_after_fifteen_minutes(self) -> None:
        clock = FakeClock()
        limiter = _limiter(clock)
        for _ in range(5):
            limiter.record_failure("alice:ip")
        clock.now += 15 * 60
        assert limiter.is_locked_out("alice:ip")[0] is False

    def test_counter_restarts_after_lockout(self) -> None:
        """Reaching the limit clears the counter, so the next failure counts from one."""
        clock = FakeClock()
        limiter = _limiter(clock)
        for _ in range(5):
            limiter.record_failure("alice:ip")
        clock.now += 15 * 60 + 1
        assert limiter.record_failure("alice:ip") == 1

    def test_keys_are_independent(self) -> None:
        limiter = _limiter(FakeClock())
        for _ in range(5):
            limiter.record_failure("alice:10.0.0.1")
        assert limiter.is_locked_out("alice:10.0.0.2")[0] is False
        assert limiter.is_locked_out("bob:10.0.0.1")[0] is False

    def test_reset_clears_counter_and_lockout(self) -> None:
        limiter = _limiter(FakeClock())
        for _ in range(5):
            limiter.record_failure("alice:ip")
        limiter.reset("alice:ip")
        assert limiter.is_locked_out("alice:ip")[0] is False
        assert limiter.record_failure("alice:ip") == 1


class TestWindow:
    def test_failures_forgotten_after_quiet_window(self) -> None:
        clock = FakeClock()
        limiter = _limiter(clock)
        for _ in range(4):
            limiter.record_failure("alice:ip")
        clock.now += 15 * 60 + 1
        assert limiter.record_failure("alice:ip") == 1

    def test_remaining_attempts(self) -> None:
        limiter = _limiter(FakeClock())
        assert limiter.remaining_attempts(1) == 4
        assert limiter.remaining_attempts(7) == 0

    def test_custom_policy(self) -> None:
        clock = FakeClock()
        limiter = LoginRateLimiter(
            MemoryCache(clock=clock),
            max_attempts=2,
            lockout=timedelta(minutes=1),
            clock=clock,
        )
        limiter.record_failure("k")
        limiter.record_failure("k")
        assert limiter.is_locked_out("k")[0] is True
        assert limiter.lockout_minutes == 1
