"""
tests/test_password_policy.py -- Password strength rules.
"""

from __future__ import annotations

import pytest

from auth.password_policy import checklist, validate


@pytest.mark.parametrize("password", ["Passw0rd!", "Str0ng!pass", "P@ssw0rd1"])
def test_strong_passwords_pass(password: str) -> None:
    assert validate(password) == (True, "")


@pytest.mark.parametrize(
    "password,missing",
    [
        ("Pa0!", "8 characters"),
        ("passw0rd!", "upper-case"),
        ("PASSW0RD!", "lower-case"),
        ("Password!", "digit"),
        ("Passw0rdd", "special"),
    ],
)
def test_first_failing_rule_is_named(password: str, missing: str) -> None:
    ok, message = validate(password)
    assert ok is False
    assert missing in message


def test_empty_password_is_required() -> None:
    assert validate("") == (False, "Password is required.")
    assert validate(None) == (False, "Password is required.")


def test_checklist_reports_every_rule() -> None:
    rules = checklist("abc")
    assert len(rules) == 5
    assert [met for _, met in rules] == [False, False, True, False, False]
