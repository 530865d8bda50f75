from __future__ import annotations

from member_auth.application.services.reset_tokens import ResetTokenService


class CleanupResetTokensUseCase:
    def __init__(self, *, reset_tokens: ResetTokenService):
        self._reset_tokens = reset_tokens

    def execute(self) -> int:
        return self._reset_tokens.cleanup_expired()
