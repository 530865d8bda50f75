from __future__ import annotations

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.engine import Engine

from member_auth.application.ports.reset_token_port import ResetTokenPort
from member_auth.domain.entities.reset_token import PasswordResetToken
from member_auth.infrastructure.db.errors import store_errors
from member_auth.infrastructure.db.mappers.accounts_mapper import map_row_to_reset_token


class SqlResetTokenRepository(ResetTokenPort):
    def __init__(self, engine: Engine):
        self._engine = engine

    def save_token(self, *, token: PasswordResetToken) -> None:
        sql = """
            INSERT INTO public.password_reset_tokens (
                token, email, expires_at, used, created_at, used_at
            ) VALUES (
                :token, :email, :expires_at, :used, :created_at, :used_at
            )
        """
        with store_errors("save_reset_token"):
            with self._engine.begin() as conn:
                conn.execute(
                    text(sql),
                    {
                        "token": token.token,
                        "email": token.email,
                        "expires_at": token.expires_at,
                        "used": token.used,
                        "created_at": token.created_at,
                        "used_at": token.used_at,
                    },
                )

    def get_token(self, *, token: str) -> PasswordResetToken | None:
        sql = """
            SELECT token, email, expires_at, used, created_at, used_at
            FROM public.password_reset_tokens
            WHERE token = :token
        """
        with store_errors("get_reset_token"):
            with self._engine.connect() as conn:
                row = conn.execute(text(sql), {"token": token}).mappings().first()
        if row is None:
            return None
        return map_row_to_reset_token(row)

    def mark_token_used(self, *, token: str, used_at: datetime) -> bool:
        # Single-row conditional update; only one caller can flip ``used``.
        sql = """
            UPDATE public.password_reset_tokens
            SET used = true,
                used_at = :used_at
            WHERE token = :token
              AND used = false
        """
        with store_errors("mark_reset_token_used"):
            with self._engine.begin() as conn:
                result = conn.execute(text(sql), {"token": token, "used_at": used_at})
        return result.rowcount == 1

    def delete_expired_tokens(self, *, now: datetime) -> int:
        sql = "DELETE FROM public.password_reset_tokens WHERE expires_at < :now"
        with store_errors("delete_expired_reset_tokens"):
            with self._engine.begin() as conn:
                result = conn.execute(text(sql), {"now": now})
        return result.rowcount
