from __future__ import annotations

from typing import Any, Mapping

from member_auth.domain.entities.audit import AuditLogEntry
from member_auth.domain.entities.reset_token import PasswordResetToken
from member_auth.domain.entities.user import (
    AccountState,
    ActiveAccount,
    AuthIdentity,
    AuthSession,
    DeletedAccount,
    User,
)


def _as_str(value: Any) -> str:
    return str(value)


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def map_row_to_account_state(row: Mapping[str, Any]) -> AccountState:
    deleted_at = row.get("deleted_at")
    if deleted_at is None:
        return ActiveAccount()
    return DeletedAccount(
        deleted_at=deleted_at,
        audit_trail_id=_optional_str(row.get("deletion_audit_id")),
    )


def map_row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        id=_as_str(row["id"]),
        name=row["name"],
        email=row["email"],
        password_hash=row.get("password_hash"),
        membership=row.get("membership") or "free",
        stripe_customer_id=row.get("stripe_customer_id"),
        stripe_subscription_id=row.get("stripe_subscription_id"),
        payment_status=row.get("payment_status"),
        membership_updated_at=row.get("membership_updated_at"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        state=map_row_to_account_state(row),
    )


def map_row_to_auth_identity(row: Mapping[str, Any]) -> AuthIdentity:
    return AuthIdentity(
        id=_as_str(row["id"]),
        user_id=_as_str(row["user_id"]),
        provider=row["provider"],
        provider_subject=row["provider_subject"],
        created_at=row["created_at"],
    )


def map_row_to_auth_session(row: Mapping[str, Any]) -> AuthSession:
    return AuthSession(
        id=_as_str(row["id"]),
        user_id=_as_str(row["user_id"]),
        expires_at=row["expires_at"],
        user_agent=row.get("user_agent"),
        ip=row.get("ip"),
        created_at=row["created_at"],
    )


def map_row_to_reset_token(row: Mapping[str, Any]) -> PasswordResetToken:
    return PasswordResetToken(
        token=row["token"],
        email=row["email"],
        expires_at=row["expires_at"],
        used=bool(row["used"]),
        created_at=row["created_at"],
        used_at=row.get("used_at"),
    )


def map_audit_entry_to_params(entry: AuditLogEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "action": entry.action,
        "user_id": entry.user_id,
        "masked_email": entry.masked_email,
        "ip": entry.ip,
        "user_agent": entry.user_agent,
        "success": entry.success,
        "created_at": entry.timestamp,
    }
