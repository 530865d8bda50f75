from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from member_auth.application.dto.auth import ResetPasswordInput, ResetPasswordOutput
from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.application.ports.password_hasher_port import PasswordHasherPort
from member_auth.application.services.reset_tokens import ResetTokenService
from member_auth.domain.exceptions import InvalidResetTokenError, NotFoundError
from member_auth.domain.services.password_policy import STRICT_POLICY, PasswordPolicy
from member_auth.shared.clock import utcnow

from .auth_common import require_strong_password


logger = logging.getLogger(__name__)

RESET_PASSWORD_MESSAGE = "Your password has been reset. You can now sign in."


class ResetPasswordUseCase:
    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        password_hasher: PasswordHasherPort,
        reset_tokens: ResetTokenService,
        password_policy: PasswordPolicy = STRICT_POLICY,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._accounts_port = accounts_port
        self._password_hasher = password_hasher
        self._reset_tokens = reset_tokens
        self._password_policy = password_policy
        self._clock = clock

    def execute(self, command: ResetPasswordInput) -> ResetPasswordOutput:
        if not command.token:
            raise InvalidResetTokenError()
        require_strong_password(self._password_policy, command.password)

        email = self._reset_tokens.verify(command.token)
        if email is None:
            raise InvalidResetTokenError()

        user = self._accounts_port.get_user_by_email(email=email)
        if user is None or user.is_deleted:
            raise NotFoundError("User not found.")

        password_hash = self._password_hasher.hash(command.password)
        self._accounts_port.update_user_password_hash(
            user_id=user.id,
            password_hash=password_hash,
            updated_at=self._clock(),
        )

        # Consumed only once the new hash is committed.
        if not self._reset_tokens.mark_used(command.token):
            logger.warning("reset_password: token_already_consumed user_id=%s", user.id)
        logger.info("reset_password: password_reset user_id=%s ip=%s", user.id, command.ip or "unknown")
        return ResetPasswordOutput(message=RESET_PASSWORD_MESSAGE)
