from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Union


AuthProvider = Literal["google"]
MembershipTier = Literal["free", "paid"]

DELETED_USER_NAME = "Deleted User"


@dataclass(frozen=True)
class ActiveAccount:
    pass


@dataclass(frozen=True)
class DeletedAccount:
    deleted_at: datetime
    audit_trail_id: str | None = None


AccountState = Union[ActiveAccount, DeletedAccount]


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str
    password_hash: str | None
    membership: MembershipTier
    stripe_customer_id: str | None
    stripe_subscription_id: str | None
    payment_status: str | None
    membership_updated_at: datetime | None
    created_at: datetime
    updated_at: datetime
    state: AccountState = ActiveAccount()

    @property
    def is_deleted(self) -> bool:
        return isinstance(self.state, DeletedAccount)

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    @property
    def is_paid(self) -> bool:
        return self.membership == "paid"


@dataclass(frozen=True)
class AuthIdentity:
    id: str
    user_id: str
    provider: AuthProvider
    provider_subject: str
    created_at: datetime


@dataclass(frozen=True)
class AuthSession:
    id: str
    user_id: str
    expires_at: datetime
    user_agent: str | None
    ip: str | None
    created_at: datetime


def masked_email_for_deletion(email: str, deleted_at: datetime) -> str:
    """Rewrite an email so it can never collide with a later signup."""
    return f"deleted_{int(deleted_at.timestamp() * 1000)}_{email}"
