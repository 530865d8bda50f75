from __future__ import annotations

import logging

from passlib.context import CryptContext

from member_auth.application.ports.password_hasher_port import PasswordHasherPort


logger = logging.getLogger(__name__)


class PasswordHasher(PasswordHasherPort):
    """argon2 for new hashes; bcrypt hashes still verify and are flagged for upgrade."""

    def __init__(self):
        self._ctx = CryptContext(
            schemes=["argon2", "bcrypt"],
            deprecated="auto",
        )

    def hash(self, plain_password: str) -> str:
        return self._ctx.hash(plain_password)

    def verify(self, plain_password: str, password_hash: str) -> bool:
        try:
            return self._ctx.verify(plain_password, password_hash)
        except (ValueError, TypeError) as exc:
            logger.warning("password_hasher: malformed_hash detail=%s", exc)
            return False

    def verify_and_update(self, plain_password: str, password_hash: str) -> tuple[bool, str | None]:
        try:
            verified, replacement_hash = self._ctx.verify_and_update(plain_password, password_hash)
        except (ValueError, TypeError) as exc:
            logger.warning("password_hasher: malformed_hash detail=%s", exc)
            return False, None
        return bool(verified), replacement_hash
