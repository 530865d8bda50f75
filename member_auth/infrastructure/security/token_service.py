from __future__ import annotations

from datetime import datetime, timedelta

import jwt

from member_auth.application.dto.auth import SessionTokenPayload
from member_auth.application.ports.session_token_port import SessionTokenPort


SESSION_TOKEN_TYPE = "session"


class JwtSessionTokenService(SessionTokenPort):
    def __init__(self, *, secret: str, ttl_minutes: int):
        self._secret = secret
        self._ttl_minutes = ttl_minutes

    def create_session_token(self, *, user_id: str, session_id: str, now: datetime) -> tuple[str, datetime]:
        exp = now + timedelta(minutes=self._ttl_minutes)
        payload = {
            "sub": user_id,
            "jti": session_id,
            "type": SESSION_TOKEN_TYPE,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
        }
        token = jwt.encode(payload, self._secret, algorithm="HS256")
        return token, exp

    def decode_session_token(self, *, token: str) -> SessionTokenPayload:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=["HS256"],
                options={"require": ["sub", "jti", "exp"]},
            )
        except jwt.PyJWTError as exc:
            raise ValueError("Invalid session token.") from exc

        if payload.get("type") != SESSION_TOKEN_TYPE:
            raise ValueError("Invalid token type.")

        user_id = payload.get("sub")
        if not user_id or not isinstance(user_id, str):
            raise ValueError("Invalid token subject.")

        return SessionTokenPayload(user_id=user_id, session_id=str(payload["jti"]))
