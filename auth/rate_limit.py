"""
auth/rate_limit.py -- Failed-login counting and temporary lockout.

Policy (defaults from Settings): 5 failed attempts for the same
(username, client IP) lock that pair out for 15 minutes.

  attempts:<key>  -- failure counter. Every failure refreshes its 15-minute
                     expiry, so it only resets after 15 quiet minutes.
  lockout:<key>   -- lockout end (epoch seconds), expiring with the lockout.

Reaching the limit clears the counter and sets the lockout marker. A
successful login clears both.

This is pure policy over a KeyValueCache; where the counters live is the
cache's business. State is best-effort: a restart of the memory backend
forgets every counter, which is acceptable for a UX throttle.
"""

from __future__ import annotations

import math
import time
from datetime import timedelta
from typing import Callable

from cache.store import KeyValueCache

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_WINDOW = timedelta(minutes=15)
DEFAULT_LOCKOUT = timedelta(minutes=15)


def login_key(username: str, client_ip: str | None) -> str:
    return f"{username}:{client_ip or 'unknown'}"


class LoginRateLimiter:
    def __init__(
        self,
        cache: KeyValueCache,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window: timedelta = DEFAULT_WINDOW,
        lockout: timedelta = DEFAULT_LOCKOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = cache
        self.max_attempts = max_attempts
        self.window = window
        self.lockout = lockout
        self._clock = clock

    def record_failure(self, key: str) -> int:
        """Count one failed attempt and return the new count.

        The count that reaches max_attempts also starts the lockout; the
        caller can compare the return value against max_attempts to tell
        that case apart.
        """
        attempts = self.cache.increment(f"attempts:{key}", ttl=self.window.total_seconds())
        if attempts >= self.max_attempts:
            lockout_seconds = self.lockout.total_seconds()
            self.cache.set(f"lockout:{key}", self._clock() + lockout_seconds, ttl=lockout_seconds)
            self.cache.remove(f"attempts:{key}")
        return attempts

    def is_locked_out(self, key: str) -> tuple[bool, timedelta]:
        """Return (locked, remaining). remaining is zero when not locked."""
        lockout_end = self.cache.get(f"lockout:{key}")
        if lockout_end is None:
            return False, timedelta(0)
        remaining = float(lockout_end) - self._clock()
        if remaining <= 0:
            return False, timedelta(0)
        return True, timedelta(seconds=remaining)

    def reset(self, key: str) -> None:
        self.cache.remove(f"attempts:{key}")
        self.cache.remove(f"lockout:{key}")

    def remaining_attempts(self, attempts: int) -> int:
        return max(self.max_attempts - attempts, 0)

    @property
    def lockout_minutes(self) -> int:
        return math.ceil(self.lockout.total_seconds() / 60)
