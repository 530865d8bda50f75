from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable
from uuid import uuid4

from member_auth.application.dto.account import DeleteAccountInput, DeleteAccountOutput
from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.application.ports.audit_log_port import AuditLogPort
from member_auth.application.services.membership_reconciler import MembershipReconciler
from member_auth.domain.entities.audit import AuditLogEntry
from member_auth.domain.entities.user import masked_email_for_deletion
from member_auth.domain.exceptions import (
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from member_auth.shared.clock import utcnow
from member_auth.shared.logging_config import mask_email

from .audit_trail import record_audit_entry


logger = logging.getLogger(__name__)

ACCOUNT_DELETED_MESSAGE = "Your account has been deleted."


class DeleteAccountUseCase:
    """Deletes the caller's own account.

    Steps: cancel the subscription at the provider (best effort), then one
    transaction removing the member record, sessions and identities and
    soft-deleting the user, then the audit entry. An audit failure after
    commit is reported through ``audit_logged`` and does not undo anything.
    """

    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        membership_reconciler: MembershipReconciler,
        audit_log: AuditLogPort,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._accounts_port = accounts_port
        self._membership_reconciler = membership_reconciler
        self._audit_log = audit_log
        self._clock = clock

    def execute(self, command: DeleteAccountInput) -> DeleteAccountOutput:
        session_user = command.requesting_user
        if session_user is None:
            raise UnauthorizedError()
        if session_user.id != command.target_user_id:
            logger.warning(
                "delete_account: cross_account_attempt user_id=%s target_user_id=%s",
                session_user.id,
                command.target_user_id,
            )
            raise ForbiddenError()
        if command.confirm_email != session_user.email:
            raise ValidationError("The confirmation email does not match your account.")

        user = self._accounts_port.get_user_by_id(user_id=session_user.id)
        if user is None or user.is_deleted:
            raise NotFoundError("User not found.")

        subscription_canceled = self._membership_reconciler.cancel_for_deletion(user=user)

        deleted_at = self._clock()
        audit_id = str(uuid4())

        def _tx(accounts_port: AccountsPort) -> tuple[int, int]:
            accounts_port.delete_member_record(user_id=user.id)
            accounts_port.soft_delete_user(
                user_id=user.id,
                masked_email=masked_email_for_deletion(user.email, deleted_at),
                deleted_at=deleted_at,
                audit_trail_id=audit_id,
            )
            sessions = accounts_port.delete_sessions_for_user(user_id=user.id)
            identities = accounts_port.delete_identities_for_user(user_id=user.id)
            return sessions, identities

        sessions_removed, identities_removed = self._accounts_port.execute_in_transaction(_tx)
        logger.info(
            "delete_account: account_deleted user_id=%s sessions=%s identities=%s subscription_canceled=%s",
            user.id,
            sessions_removed,
            identities_removed,
            subscription_canceled,
        )

        audit_logged = record_audit_entry(
            self._audit_log,
            AuditLogEntry(
                id=audit_id,
                action="account_deletion",
                user_id=user.id,
                masked_email=mask_email(user.email),
                timestamp=deleted_at,
                ip=command.ip or "unknown",
                user_agent=command.user_agent or "unknown",
                success=True,
            ),
        )
        return DeleteAccountOutput(
            success=True,
            message=ACCOUNT_DELETED_MESSAGE,
            subscription_canceled=subscription_canceled,
            audit_logged=audit_logged,
        )
