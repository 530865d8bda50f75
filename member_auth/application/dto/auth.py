from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AuthUserOutput:
    id: str
    name: str
    email: str
    membership: str


@dataclass(frozen=True)
class RegisterUserInput:
    name: str
    email: str
    password: str


@dataclass(frozen=True)
class RegisterUserOutput:
    user: AuthUserOutput
    message: str


@dataclass(frozen=True)
class LoginLocalInput:
    email: str
    password: str
    user_agent: str | None
    ip: str | None


@dataclass(frozen=True)
class LoginGoogleInput:
    id_token: str
    user_agent: str | None
    ip: str | None


@dataclass(frozen=True)
class SessionOutput:
    user: AuthUserOutput
    session_token: str
    expires_at: datetime


@dataclass(frozen=True)
class SessionTokenPayload:
    user_id: str
    session_id: str


@dataclass(frozen=True)
class ExternalIdentityInfo:
    subject: str
    email: str
    email_verified: bool
    name: str | None


@dataclass(frozen=True)
class ForgotPasswordInput:
    email: str


@dataclass(frozen=True)
class ForgotPasswordOutput:
    message: str


@dataclass(frozen=True)
class ResetPasswordInput:
    token: str
    password: str
    ip: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class ResetPasswordOutput:
    message: str


@dataclass(frozen=True)
class ChangePasswordInput:
    user_id: str
    current_password: str
    new_password: str
    confirm_password: str
    ip: str | None
    user_agent: str | None
