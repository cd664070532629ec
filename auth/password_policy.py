"""
auth/password_policy.py -- Password strength rules for new and changed passwords.

Policy: at least 8 characters, with an upper-case letter, a lower-case
letter, a digit and one character from SPECIAL_CHARACTERS.

Checked by the registration route and the admin CLI before a password is
hashed. The login path never consults it: existing passwords stay valid if
the policy tightens.
"""

from __future__ import annotations

MIN_LENGTH = 8
SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{}|;':\",./<>?"

POLICY_HINT = "At least 8 characters, with upper-case, lower-case, digit and special character"


def _rules(password: str) -> list[tuple[str, bool]]:
    return [
        (f"At least {MIN_LENGTH} characters", len(password) >= MIN_LENGTH),
        ("Contains an upper-case letter", any(c.isupper() for c in password)),
        ("Contains a lower-case letter", any(c.islower() for c in password)),
        ("Contains a digit", any(c.isdigit() for c in password)),
        ("Contains a special character", any(c in SPECIAL_CHARACTERS for c in password)),
    ]


def validate(password: str | None) -> tuple[bool, str]:
    """Return (ok, message). message names the first rule that fails."""
    if not password:
        return False, "Password is required."
    for rule, met in _rules(password):
        if not met:
            return False, f"Password rule not met: {rule.lower()}."
    return True, ""


def checklist(password: str | None) -> list[tuple[str, bool]]:
    """Return every rule with whether it is met, for live form feedback."""
    return _rules(password or "")
