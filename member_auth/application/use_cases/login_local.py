from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from member_auth.application.dto.auth import AuthUserOutput, LoginLocalInput, SessionOutput
from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.application.ports.password_hasher_port import PasswordHasherPort
from member_auth.application.services.session_issuer import SessionIssuer
from member_auth.domain.exceptions import InvalidCredentialsError
from member_auth.shared.clock import utcnow
from member_auth.shared.logging_config import mask_email

from .auth_common import build_auth_user_output, issue_session, normalize_email


logger = logging.getLogger(__name__)


class LoginLocalUseCase:
    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        password_hasher: PasswordHasherPort,
        session_issuer: SessionIssuer,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._accounts_port = accounts_port
        self._password_hasher = password_hasher
        self._session_issuer = session_issuer
        self._clock = clock

    def authorize(self, *, email: str, password: str) -> AuthUserOutput | None:
        """Credential check. None on any credential failure; store outages propagate."""
        normalized = normalize_email(email or "")
        if not normalized or not password:
            return None

        user = self._accounts_port.get_user_by_email(email=normalized)
        if user is None or user.is_deleted or not user.password_hash:
            logger.info("login_local: rejected reason=no_credential email=%s", mask_email(normalized))
            return None

        valid, replacement_hash = self._password_hasher.verify_and_update(password, user.password_hash)
        if not valid:
            logger.info("login_local: rejected reason=bad_password user_id=%s", user.id)
            return None

        if replacement_hash:
            self._accounts_port.update_user_password_hash(
                user_id=user.id,
                password_hash=replacement_hash,
                updated_at=self._clock(),
            )
            logger.info("login_local: password_hash_upgraded user_id=%s", user.id)

        return build_auth_user_output(user)

    def execute(self, command: LoginLocalInput) -> SessionOutput:
        identity = self.authorize(email=command.email, password=command.password)
        if identity is None:
            raise InvalidCredentialsError()

        user = self._accounts_port.get_user_by_id(user_id=identity.id)
        if user is None or user.is_deleted:
            raise InvalidCredentialsError()

        return issue_session(
            user=user,
            accounts_port=self._accounts_port,
            session_issuer=self._session_issuer,
            user_agent=command.user_agent,
            ip=command.ip,
        )
