from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.domain.entities.user import DELETED_USER_NAME, AuthIdentity, AuthSession, User
from member_auth.domain.exceptions import EmailAlreadyExistsError
from member_auth.infrastructure.db.errors import store_errors
from member_auth.infrastructure.db.mappers.accounts_mapper import (
    map_row_to_auth_identity,
    map_row_to_auth_session,
    map_row_to_user,
)


T = TypeVar("T")

USER_COLUMNS = """
    id, name, email, password_hash, membership, stripe_customer_id, stripe_subscription_id,
    payment_status, membership_updated_at, deleted_at, deletion_audit_id, created_at, updated_at
"""


class SqlAccountsRepository(AccountsPort):
    """Users and their linked records.

    Built on an engine, every call runs in its own short transaction. Inside
    ``execute_in_transaction`` the callback receives a repository bound to a
    single connection, so all of its writes commit or roll back together.
    """

    def __init__(self, engine: Engine, *, connection: Connection | None = None):
        self._engine = engine
        self._connection = connection

    @contextmanager
    def _read(self) -> Iterator[Connection]:
        if self._connection is not None:
            yield self._connection
            return
        with self._engine.connect() as conn:
            yield conn

    @contextmanager
    def _write(self) -> Iterator[Connection]:
        if self._connection is not None:
            yield self._connection
            return
        with self._engine.begin() as conn:
            yield conn

    def execute_in_transaction(self, fn: Callable[[AccountsPort], T]) -> T:
        if self._connection is not None:
            return fn(self)
        with store_errors("transaction"):
            with self._engine.begin() as conn:
                return fn(SqlAccountsRepository(self._engine, connection=conn))

    def _fetch_user(self, where: str, params: dict) -> User | None:
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM public.users
            WHERE {where}
            LIMIT 1
        """
        with store_errors("get_user"):
            with self._read() as conn:
                row = conn.execute(text(sql), params).mappings().first()
        if row is None:
            return None
        return map_row_to_user(row)

    def get_user_by_id(self, *, user_id: str) -> User | None:
        return self._fetch_user("id = :user_id", {"user_id": user_id})

    def get_user_by_email(self, *, email: str) -> User | None:
        return self._fetch_user("email = :email AND deleted_at IS NULL", {"email": email.lower()})

    def get_user_by_stripe_customer_id(self, *, stripe_customer_id: str) -> User | None:
        return self._fetch_user(
            "stripe_customer_id = :stripe_customer_id AND deleted_at IS NULL",
            {"stripe_customer_id": stripe_customer_id},
        )

    def get_user_by_stripe_subscription_id(self, *, stripe_subscription_id: str) -> User | None:
        return self._fetch_user(
            "stripe_subscription_id = :stripe_subscription_id AND deleted_at IS NULL",
            {"stripe_subscription_id": stripe_subscription_id},
        )

    def create_user(
        self,
        *,
        user_id: str,
        name: str,
        email: str,
        password_hash: str | None,
        created_at: datetime,
    ) -> User:
        sql = f"""
            INSERT INTO public.users (
                id, name, email, password_hash, membership, created_at, updated_at
            ) VALUES (
                :id, :name, :email, :password_hash, 'free', :created_at, :created_at
            )
            RETURNING {USER_COLUMNS}
        """
        params = {
            "id": user_id,
            "name": name,
            "email": email.lower(),
            "password_hash": password_hash,
            "created_at": created_at,
        }
        try:
            with store_errors("create_user"):
                with self._write() as conn:
                    row = conn.execute(text(sql), params).mappings().one()
                    conn.execute(
                        text(
                            """
                            INSERT INTO public.members (user_id, display_name, created_at)
                            VALUES (:id, :name, :created_at)
                            """
                        ),
                        {"id": user_id, "name": name, "created_at": created_at},
                    )
        except IntegrityError as exc:
            raise EmailAlreadyExistsError() from exc
        return map_row_to_user(row)

    def update_user_password_hash(self, *, user_id: str, password_hash: str, updated_at: datetime) -> None:
        sql = """
            UPDATE public.users
            SET password_hash = :password_hash,
                updated_at = :updated_at
            WHERE id = :user_id
              AND deleted_at IS NULL
        """
        with store_errors("update_user_password_hash"):
            with self._write() as conn:
                conn.execute(
                    text(sql),
                    {"user_id": user_id, "password_hash": password_hash, "updated_at": updated_at},
                )

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
        sql = """
            UPDATE public.users
            SET membership = :membership,
                stripe_customer_id = :stripe_customer_id,
                stripe_subscription_id = :stripe_subscription_id,
                payment_status = :payment_status,
                membership_updated_at = :updated_at,
                updated_at = :updated_at
            WHERE id = :user_id
              AND deleted_at IS NULL
        """
        with store_errors("update_user_membership"):
            with self._write() as conn:
                conn.execute(
                    text(sql),
                    {
                        "user_id": user_id,
                        "membership": membership,
                        "stripe_customer_id": stripe_customer_id,
                        "stripe_subscription_id": stripe_subscription_id,
                        "payment_status": payment_status,
                        "updated_at": updated_at,
                    },
                )

    def soft_delete_user(
        self,
        *,
        user_id: str,
        masked_email: str,
        deleted_at: datetime,
        audit_trail_id: str,
    ) -> None:
        sql = """
            UPDATE public.users
            SET deleted_at = :deleted_at,
                deletion_audit_id = :audit_trail_id,
                email = :masked_email,
                name = :deleted_name,
                password_hash = NULL,
                updated_at = :deleted_at
            WHERE id = :user_id
              AND deleted_at IS NULL
        """
        with store_errors("soft_delete_user"):
            with self._write() as conn:
                conn.execute(
                    text(sql),
                    {
                        "user_id": user_id,
                        "masked_email": masked_email,
                        "deleted_at": deleted_at,
                        "audit_trail_id": audit_trail_id,
                        "deleted_name": DELETED_USER_NAME,
                    },
                )

    def delete_member_record(self, *, user_id: str) -> bool:
        sql = "DELETE FROM public.members WHERE user_id = :user_id"
        with store_errors("delete_member_record"):
            with self._write() as conn:
                result = conn.execute(text(sql), {"user_id": user_id})
        return result.rowcount > 0

    def create_identity(
        self,
        *,
        identity_id: str,
        user_id: str,
        provider: str,
        provider_subject: str,
        created_at: datetime,
    ) -> AuthIdentity:
        sql = """
            INSERT INTO public.auth_identities (
                id, user_id, provider, provider_subject, created_at
            ) VALUES (
                :id, :user_id, :provider, :provider_subject, :created_at
            )
            RETURNING id, user_id, provider, provider_subject, created_at
        """
        with store_errors("create_identity"):
            with self._write() as conn:
                row = conn.execute(
                    text(sql),
                    {
                        "id": identity_id,
                        "user_id": user_id,
                        "provider": provider,
                        "provider_subject": provider_subject,
                        "created_at": created_at,
                    },
                ).mappings().one()
        return map_row_to_auth_identity(row)

    def get_identity_by_provider_subject(self, *, provider: str, provider_subject: str) -> AuthIdentity | None:
        sql = """
            SELECT id, user_id, provider, provider_subject, created_at
            FROM public.auth_identities
            WHERE provider = :provider
              AND provider_subject = :provider_subject
            LIMIT 1
        """
        with store_errors("get_identity_by_provider_subject"):
            with self._read() as conn:
                row = conn.execute(
                    text(sql),
                    {"provider": provider, "provider_subject": provider_subject},
                ).mappings().first()
        if row is None:
            return None
        return map_row_to_auth_identity(row)

    def delete_identities_for_user(self, *, user_id: str) -> int:
        sql = "DELETE FROM public.auth_identities WHERE user_id = :user_id"
        with store_errors("delete_identities_for_user"):
            with self._write() as conn:
                result = conn.execute(text(sql), {"user_id": user_id})
        return result.rowcount

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
        sql = """
            INSERT INTO public.auth_sessions (
                id, user_id, expires_at, user_agent, ip, created_at
            ) VALUES (
                :id, :user_id, :expires_at, :user_agent, :ip, :created_at
            )
            RETURNING id, user_id, expires_at, user_agent, ip, created_at
        """
        with store_errors("create_session"):
            with self._write() as conn:
                row = conn.execute(
                    text(sql),
                    {
                        "id": session_id,
                        "user_id": user_id,
                        "expires_at": expires_at,
                        "user_agent": user_agent,
                        "ip": ip,
                        "created_at": created_at,
                    },
                ).mappings().one()
        return map_row_to_auth_session(row)

    def delete_sessions_for_user(self, *, user_id: str) -> int:
        sql = "DELETE FROM public.auth_sessions WHERE user_id = :user_id"
        with store_errors("delete_sessions_for_user"):
            with self._write() as conn:
                result = conn.execute(text(sql), {"user_id": user_id})
        return result.rowcount
