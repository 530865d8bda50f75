from __future__ import annotations

from typing import Protocol


class PasswordHasherPort(Protocol):
    def hash(self, plain_password: str) -> str:
        ...

    def verify(self, plain_password: str, password_hash: str) -> bool:
        """Never raises; a malformed stored hash simply does not match."""
        ...

    def verify_and_update(self, plain_password: str, password_hash: str) -> tuple[bool, str | None]:
        """Like ``verify`` but also returns a replacement hash for outdated schemes."""
        ...
