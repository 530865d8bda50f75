from __future__ import annotations

from dataclasses import dataclass

from member_auth.domain.entities.user import User


@dataclass(frozen=True)
class DeleteAccountInput:
    requesting_user: User | None
    target_user_id: str
    confirm_email: str
    ip: str | None
    user_agent: str | None


@dataclass(frozen=True)
class DeleteAccountOutput:
    success: bool
    message: str
    subscription_canceled: bool
    audit_logged: bool
