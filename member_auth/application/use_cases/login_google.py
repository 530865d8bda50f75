from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable
from uuid import uuid4

from member_auth.application.dto.auth import LoginGoogleInput, SessionOutput
from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.application.ports.identity_provider_port import IdentityProviderPort
from member_auth.application.services.session_issuer import SessionIssuer
from member_auth.domain.exceptions import GoogleTokenValidationError, InvalidCredentialsError
from member_auth.domain.entities.user import User
from member_auth.shared.clock import utcnow

from .auth_common import issue_session, normalize_email


logger = logging.getLogger(__name__)


class LoginGoogleUseCase:
    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        identity_provider: IdentityProviderPort,
        session_issuer: SessionIssuer,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._accounts_port = accounts_port
        self._identity_provider = identity_provider
        self._session_issuer = session_issuer
        self._clock = clock

    def execute(self, command: LoginGoogleInput) -> SessionOutput:
        google_identity = self._identity_provider.verify_id_token(id_token=command.id_token)
        email = normalize_email(google_identity.email)
        if not google_identity.email_verified:
            raise GoogleTokenValidationError("Google account email is not verified.")

        def _tx(accounts_port: AccountsPort) -> User:
            now = self._clock()
            identity = accounts_port.get_identity_by_provider_subject(
                provider="google",
                provider_subject=google_identity.subject,
            )
            if identity is not None:
                linked = accounts_port.get_user_by_id(user_id=identity.user_id)
                if linked is None or linked.is_deleted:
                    raise InvalidCredentialsError()
                return linked

            user = accounts_port.get_user_by_email(email=email)
            if user is None:
                user_name = google_identity.name.strip() if google_identity.name else email.split("@")[0]
                user = accounts_port.create_user(
                    user_id=str(uuid4()),
                    name=user_name,
                    email=email,
                    password_hash=None,
                    created_at=now,
                )
                logger.info("login_google: user_created user_id=%s", user.id)

            accounts_port.create_identity(
                identity_id=str(uuid4()),
                user_id=user.id,
                provider="google",
                provider_subject=google_identity.subject,
                created_at=now,
            )
            logger.info("login_google: identity_linked user_id=%s", user.id)
            return user

        user = self._accounts_port.execute_in_transaction(_tx)
        return issue_session(
            user=user,
            accounts_port=self._accounts_port,
            session_issuer=self._session_issuer,
            user_agent=command.user_agent,
            ip=command.ip,
        )
