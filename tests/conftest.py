from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from member_auth.domain.entities.audit import AuditLogEntry
from member_auth.domain.entities.reset_token import PasswordResetToken
from member_auth.domain.entities.user import AuthIdentity, AuthSession, DeletedAccount, User


NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeAccountsPort:
    def __init__(self):
        self.users: dict[str, User] = {}
        self.identities: dict[str, AuthIdentity] = {}
        self.sessions: dict[str, AuthSession] = {}
        self.members: set[str] = set()
        self.transactions = 0
        self.membership_writes: list[dict] = []
        self.fail_with: Exception | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def execute_in_transaction(self, fn):
        self._check()
        self.transactions += 1
        snapshot = (dict(self.users), dict(self.identities), dict(self.sessions), set(self.members))
        try:
            return fn(self)
        except Exception:
            self.users, self.identities, self.sessions, self.members = snapshot
            raise

    def get_user_by_id(self, *, user_id: str) -> User | None:
        self._check()
        return self.users.get(user_id)

    def get_user_by_email(self, *, email: str) -> User | None:
        self._check()
        for user in self.users.values():
            if user.email == email and not user.is_deleted:
                return user
        return None

    def get_user_by_stripe_customer_id(self, *, stripe_customer_id: str) -> User | None:
        for user in self.users.values():
            if user.stripe_customer_id == stripe_customer_id and not user.is_deleted:
                return user
        return None

    def get_user_by_stripe_subscription_id(self, *, stripe_subscription_id: str) -> User | None:
        for user in self.users.values():
            if user.stripe_subscription_id == stripe_subscription_id and not user.is_deleted:
                return user
        return None

    def create_user(
        self,
        *,
        user_id: str,
        name: str,
        email: str,
        password_hash: str | None,
        created_at: datetime,
    ) -> User:
        self._check()
        user = User(
            id=user_id,
            name=name,
            email=email,
            password_hash=password_hash,
            membership="free",
            stripe_customer_id=None,
            stripe_subscription_id=None,
            payment_status=None,
            membership_updated_at=None,
            created_at=created_at,
            updated_at=created_at,
        )
        self.users[user.id] = user
        self.members.add(user.id)
        return user

    def update_user_password_hash(self, *, user_id: str, password_hash: str, updated_at: datetime) -> None:
        self._check()
        self.users[user_id] = replace(self.users[user_id], password_hash=password_hash, updated_at=updated_at)

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
        self.membership_writes.append({"user_id": user_id, "membership": membership})
        self.users[user_id] = replace(
            self.users[user_id],
            membership=membership,
            stripe_customer_id=stripe_customer_id,
            stripe_subscription_id=stripe_subscription_id,
            payment_status=payment_status,
            membership_updated_at=updated_at,
            updated_at=updated_at,
        )

    def soft_delete_user(
        self,
        *,
        user_id: str,
        masked_email: str,
        deleted_at: datetime,
        audit_trail_id: str,
    ) -> None:
        self.users[user_id] = replace(
            self.users[user_id],
            name="Deleted User",
            email=masked_email,
            password_hash=None,
            membership="free",
            stripe_subscription_id=None,
            state=DeletedAccount(deleted_at=deleted_at, audit_trail_id=audit_trail_id),
        )

    def delete_member_record(self, *, user_id: str) -> bool:
        if user_id in self.members:
            self.members.remove(user_id)
            return True
        return False

    def create_identity(
        self,
        *,
        identity_id: str,
        user_id: str,
        provider: str,
        provider_subject: str,
        created_at: datetime,
    ) -> AuthIdentity:
        identity = AuthIdentity(
            id=identity_id,
            user_id=user_id,
            provider=provider,
            provider_subject=provider_subject,
            created_at=created_at,
        )
        self.identities[identity.id] = identity
        return identity

    def get_identity_by_provider_subject(self, *, provider: str, provider_subject: str) -> AuthIdentity | None:
        for identity in self.identities.values():
            if identity.provider == provider and identity.provider_subject == provider_subject:
                return identity
        return None

    def delete_identities_for_user(self, *, user_id: str) -> int:
        doomed = [key for key, identity in self.identities.items() if identity.user_id == user_id]
        for key in doomed:
            del self.identities[key]
        return len(doomed)

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
        session = AuthSession(
            id=session_id,
            user_id=user_id,
            expires_at=expires_at,
            user_agent=user_agent,
            ip=ip,
            created_at=created_at,
        )
        self.sessions[session.id] = session
        return session

    def delete_sessions_for_user(self, *, user_id: str) -> int:
        doomed = [key for key, session in self.sessions.items() if session.user_id == user_id]
        for key in doomed:
            del self.sessions[key]
        return len(doomed)


class FakePasswordHasher:
    """Reversible stand-in; the real hasher has its own tests."""

    def __init__(self):
        self.hash_calls = 0

    def hash(self, plain_password: str) -> str:
        self.hash_calls += 1
        return f"hashed::{plain_password}"

    def verify(self, plain_password: str, password_hash: str) -> bool:
        return password_hash == f"hashed::{plain_password}"

    def verify_and_update(self, plain_password: str, password_hash: str) -> tuple[bool, str | None]:
        return self.verify(plain_password, password_hash), None


class FakeResetTokenPort:
    def __init__(self):
        self.tokens: dict[str, PasswordResetToken] = {}

    def save_token(self, *, token: PasswordResetToken) -> None:
        self.tokens[token.token] = token

    def get_token(self, *, token: str) -> PasswordResetToken | None:
        return self.tokens.get(token)

    def mark_token_used(self, *, token: str, used_at: datetime) -> bool:
        record = self.tokens.get(token)
        if record is None or record.used:
            return False
        self.tokens[token] = replace(record, used=True, used_at=used_at)
        return True

    def delete_expired_tokens(self, *, now: datetime) -> int:
        doomed = [key for key, record in self.tokens.items() if record.expires_at < now]
        for key in doomed:
            del self.tokens[key]
        return len(doomed)


class FakeAuditLog:
    def __init__(self, fail: bool = False):
        self.entries: list[AuditLogEntry] = []
        self.fail = fail

    def append(self, *, entry: AuditLogEntry) -> None:
        if self.fail:
            raise RuntimeError("audit store down")
        self.entries.append(entry)


class FakeMail:
    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    def send(self, *, to: str, subject: str, text: str, html: str) -> None:
        if self.fail:
            raise RuntimeError("mail provider down")
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})


def make_user(
    user_id: str = "user-1",
    *,
    email: str = "alice@example.com",
    password_hash: str | None = "hashed::Password123!",
    membership: str = "free",
    stripe_customer_id: str | None = None,
    stripe_subscription_id: str | None = None,
    payment_status: str | None = None,
) -> User:
    return User(
        id=user_id,
        name="Alice",
        email=email,
        password_hash=password_hash,
        membership=membership,
        stripe_customer_id=stripe_customer_id,
        stripe_subscription_id=stripe_subscription_id,
        payment_status=payment_status,
        membership_updated_at=None,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def accounts() -> FakeAccountsPort:
    return FakeAccountsPort()


@pytest.fixture
def hasher() -> FakePasswordHasher:
    return FakePasswordHasher()


@pytest.fixture
def reset_token_port() -> FakeResetTokenPort:
    return FakeResetTokenPort()
