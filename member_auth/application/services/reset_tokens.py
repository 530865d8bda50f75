from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable

from member_auth.application.ports.reset_token_port import ResetTokenPort
from member_auth.domain.entities.reset_token import PasswordResetToken
from member_auth.shared.clock import utcnow
from member_auth.shared.logging_config import mask_email


logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
DEFAULT_TTL = timedelta(hours=1)


class ResetTokenService:
    """Issues and consumes single-use password-reset tokens.

    A token moves from issued to consumed (``mark_used``) or expired. Expiry
    is evaluated when the token is read, nothing transitions it in the
    background. ``verify`` answers the same way for missing, used and expired
    tokens; only the log line tells them apart.
    """

    def __init__(
        self,
        *,
        reset_token_port: ResetTokenPort,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._reset_token_port = reset_token_port
        self._ttl = ttl
        self._clock = clock

    @staticmethod
    def generate() -> str:
        return secrets.token_hex(TOKEN_BYTES)

    def save(self, *, email: str, token: str, ttl: timedelta | None = None) -> PasswordResetToken:
        now = self._clock()
        record = PasswordResetToken(
            token=token,
            email=email,
            expires_at=now + (ttl or self._ttl),
            used=False,
            created_at=now,
            used_at=None,
        )
        self._reset_token_port.save_token(token=record)
        return record

    def verify(self, token: str) -> str | None:
        if not token:
            return None
        record = self._reset_token_port.get_token(token=token)
        if record is None:
            logger.info("reset_tokens: verify_rejected reason=not_found")
            return None
        if record.used:
            logger.info("reset_tokens: verify_rejected reason=used email=%s", mask_email(record.email))
            return None
        if record.is_expired(self._clock()):
            logger.info("reset_tokens: verify_rejected reason=expired email=%s", mask_email(record.email))
            return None
        return record.email

    def mark_used(self, token: str) -> bool:
        """Consume the token. False means another request consumed it first."""
        return self._reset_token_port.mark_token_used(token=token, used_at=self._clock())

    def cleanup_expired(self) -> int:
        removed = self._reset_token_port.delete_expired_tokens(now=self._clock())
        logger.info("reset_tokens: cleanup_expired removed=%s", removed)
        return removed
