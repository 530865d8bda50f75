from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol, TypeVar

from member_auth.domain.entities.user import AuthIdentity, AuthProvider, AuthSession, User


TAccountsResult = TypeVar("TAccountsResult")


class AccountsPort(Protocol):
    def execute_in_transaction(self, fn: Callable[[AccountsPort], TAccountsResult]) -> TAccountsResult:
        ...

    def get_user_by_id(self, *, user_id: str) -> User | None:
        ...

    def get_user_by_email(self, *, email: str) -> User | None:
        ...

    def get_user_by_stripe_customer_id(self, *, stripe_customer_id: str) -> User | None:
        ...

    def get_user_by_stripe_subscription_id(self, *, stripe_subscription_id: str) -> User | None:
        ...

    def create_user(
        self,
        *,
        user_id: str,
        name: str,
        email: str,
        password_hash: str | None,
        created_at: datetime,
    ) -> User:
        ...

    def update_user_password_hash(self, *, user_id: str, password_hash: str, updated_at: datetime) -> None:
        ...

    def update_user_membership(
        self,
        *,
        user_id: str,
        membership: str,
        stripe_customer_id: str | None,
        stripe_subscription_id: str | None,
        payment_status: str | None,
        updated_at: datetime,
    ) -> None:
        ...

    def soft_delete_user(
        self,
        *,
        user_id: str,
        masked_email: str,
        deleted_at: datetime,
        audit_trail_id: str,
    ) -> None:
        ...

    def delete_member_record(self, *, user_id: str) -> bool:
        ...

    def create_identity(
        self,
        *,
        identity_id: str,
        user_id: str,
        provider: AuthProvider,
        provider_subject: str,
        created_at: datetime,
    ) -> AuthIdentity:
        ...

    def get_identity_by_provider_subject(
        self,
        *,
        provider: AuthProvider,
        provider_subject: str,
    ) -> AuthIdentity | None:
        ...

    def delete_identities_for_user(self, *, user_id: str) -> int:
        ...

    def create_session(
        self,
        *,
        session_id: str,
        user_id: str,
        expires_at: datetime,
        user_agent: str | None,
        ip: str | None,
        created_at: datetime,
    ) -> AuthSession:
        ...

    def delete_sessions_for_user(self, *, user_id: str) -> int:
        ...
