from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable
from uuid import uuid4

from member_auth.application.dto.auth import RegisterUserInput, RegisterUserOutput
from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.application.ports.password_hasher_port import PasswordHasherPort
from member_auth.domain.exceptions import EmailAlreadyExistsError, ValidationError
from member_auth.domain.services.password_policy import STRICT_POLICY, PasswordPolicy
from member_auth.shared.clock import utcnow
from member_auth.shared.logging_config import mask_email

from .auth_common import build_auth_user_output, require_strong_password, require_valid_email


logger = logging.getLogger(__name__)

SIGNUP_MESSAGE = "Account created successfully."


class RegisterUserUseCase:
    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        password_hasher: PasswordHasherPort,
        password_policy: PasswordPolicy = STRICT_POLICY,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._accounts_port = accounts_port
        self._password_hasher = password_hasher
        self._password_policy = password_policy
        self._clock = clock

    def execute(self, command: RegisterUserInput) -> RegisterUserOutput:
        name = (command.name or "").strip()
        if not name:
            raise ValidationError("Name is required.")
        email = require_valid_email(command.email)
        require_strong_password(self._password_policy, command.password)

        # Uniqueness is checked before the (slow) hash is computed.
        if self._accounts_port.get_user_by_email(email=email) is not None:
            logger.info("register_user: email_taken email=%s", mask_email(email))
            raise EmailAlreadyExistsError()

        password_hash = self._password_hasher.hash(command.password)

        def _tx(accounts_port: AccountsPort) -> RegisterUserOutput:
            if accounts_port.get_user_by_email(email=email) is not None:
                raise EmailAlreadyExistsError()
            user = accounts_port.create_user(
                user_id=str(uuid4()),
                name=name,
                email=email,
                password_hash=password_hash,
                created_at=self._clock(),
            )
            return RegisterUserOutput(user=build_auth_user_output(user), message=SIGNUP_MESSAGE)

        output = self._accounts_port.execute_in_transaction(_tx)
        logger.info("register_user: created user_id=%s email=%s", output.user.id, mask_email(email))
        return output
