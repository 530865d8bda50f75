from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from uuid import uuid4

from member_auth.application.ports.session_token_port import SessionTokenPort
from member_auth.shared.clock import utcnow


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedSession:
    token: str
    session_id: str
    user_id: str
    issued_at: datetime
    expires_at: datetime


class SessionIssuer:
    def __init__(self, *, token_port: SessionTokenPort, clock: Callable[[], datetime] = utcnow):
        self._token_port = token_port
        self._clock = clock

    def issue(self, *, user_id: str) -> IssuedSession:
        now = self._clock()
        session_id = str(uuid4())
        token, expires_at = self._token_port.create_session_token(
            user_id=user_id,
            session_id=session_id,
            now=now,
        )
        return IssuedSession(
            token=token,
            session_id=session_id,
            user_id=user_id,
            issued_at=now,
            expires_at=expires_at,
        )

    def identity_of(self, token: str | None) -> str | None:
        """User id carried by a valid session token, else None (anonymous)."""
        if not token:
            return None
        try:
            payload = self._token_port.decode_session_token(token=token)
        except ValueError as exc:
            logger.info("session_issuer: token_rejected detail=%s", exc)
            return None
        return payload.user_id
