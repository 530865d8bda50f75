from __future__ import annotations

import re

from member_auth.application.dto.auth import AuthUserOutput, SessionOutput
from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.application.services.session_issuer import SessionIssuer
from member_auth.domain.entities.user import User
from member_auth.domain.exceptions import ValidationError, WeakPasswordError
from member_auth.domain.services.password_policy import PasswordPolicy


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def require_valid_email(email: str) -> str:
    normalized = normalize_email(email or "")
    if not normalized or not EMAIL_PATTERN.match(normalized):
        raise ValidationError("A valid email address is required.")
    return normalized


def require_strong_password(policy: PasswordPolicy, candidate: str) -> None:
    result = policy.evaluate(candidate or "")
    if not result.is_valid:
        raise WeakPasswordError(result.errors[0], errors=result.errors)


def build_auth_user_output(user: User) -> AuthUserOutput:
    return AuthUserOutput(
        id=user.id,
        name=user.name,
        email=user.email,
        membership=user.membership,
    )


def issue_session(
    *,
    user: User,
    accounts_port: AccountsPort,
    session_issuer: SessionIssuer,
    user_agent: str | None,
    ip: str | None,
) -> SessionOutput:
    issued = session_issuer.issue(user_id=user.id)
    accounts_port.create_session(
        session_id=issued.session_id,
        user_id=user.id,
        expires_at=issued.expires_at,
        user_agent=user_agent,
        ip=ip,
        created_at=issued.issued_at,
    )
    return SessionOutput(
        user=build_auth_user_output(user),
        session_token=issued.token,
        expires_at=issued.expires_at,
    )
