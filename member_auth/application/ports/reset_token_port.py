from __future__ import annotations

from datetime import datetime
from typing import Protocol

from member_auth.domain.entities.reset_token import PasswordResetToken


class ResetTokenPort(Protocol):
    def save_token(self, *, token: PasswordResetToken) -> None:
        ...

    def get_token(self, *, token: str) -> PasswordResetToken | None:
        ...

    def mark_token_used(self, *, token: str, used_at: datetime) -> bool:
        ...

    def delete_expired_tokens(self, *, now: datetime) -> int:
        ...
