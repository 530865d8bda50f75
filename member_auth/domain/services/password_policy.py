from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable


SYMBOLS = '!@#$%^&*(),.?":{}|<>'
MIN_LENGTH = 8


@dataclass(frozen=True)
class PasswordPolicyResult:
    is_valid: bool
    errors: list[str]


@dataclass(frozen=True)
class PasswordRule:
    message: str
    check: Callable[[str], bool]


STRICT_RULES: tuple[PasswordRule, ...] = (
    PasswordRule(
        message=f"Password must be at least {MIN_LENGTH} characters long.",
        check=lambda candidate: len(candidate) >= MIN_LENGTH,
    ),
    PasswordRule(
        message="Password must contain at least one uppercase letter.",
        check=lambda candidate: re.search(r"[A-Z]", candidate) is not None,
    ),
    PasswordRule(
        message="Password must contain at least one number.",
        check=lambda candidate: re.search(r"[0-9]", candidate) is not None,
    ),
    PasswordRule(
        message=f"Password must contain at least one symbol ({SYMBOLS}).",
        check=lambda candidate: any(char in SYMBOLS for char in candidate),
    ),
)


class PasswordPolicy:
    """Stateless strength check. Every rule is evaluated; nothing short-circuits."""

    def __init__(self, rules: tuple[PasswordRule, ...] = STRICT_RULES):
        self._rules = rules

    def evaluate(self, candidate: str) -> PasswordPolicyResult:
        errors = [rule.message for rule in self._rules if not rule.check(candidate)]
        return PasswordPolicyResult(is_valid=not errors, errors=errors)


STRICT_POLICY = PasswordPolicy(STRICT_RULES)
