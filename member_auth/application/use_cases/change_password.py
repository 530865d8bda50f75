from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable
from uuid import uuid4

from member_auth.application.dto.auth import ChangePasswordInput
from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.application.ports.audit_log_port import AuditLogPort
from member_auth.application.ports.password_hasher_port import PasswordHasherPort
from member_auth.domain.entities.audit import AuditLogEntry
from member_auth.domain.exceptions import NotFoundError, ValidationError
from member_auth.domain.services.password_policy import STRICT_POLICY, PasswordPolicy
from member_auth.shared.clock import utcnow
from member_auth.shared.logging_config import mask_email

from .audit_trail import record_audit_entry
from .auth_common import require_strong_password


logger = logging.getLogger(__name__)


class ChangePasswordUseCase:
    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        password_hasher: PasswordHasherPort,
        audit_log: AuditLogPort,
        password_policy: PasswordPolicy = STRICT_POLICY,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._accounts_port = accounts_port
        self._password_hasher = password_hasher
        self._audit_log = audit_log
        self._password_policy = password_policy
        self._clock = clock

    def execute(self, command: ChangePasswordInput) -> None:
        if not command.current_password or not command.new_password:
            raise ValidationError("Current and new password are required.")
        if command.new_password != command.confirm_password:
            raise ValidationError("New passwords do not match.")
        require_strong_password(self._password_policy, command.new_password)

        user = self._accounts_port.get_user_by_id(user_id=command.user_id)
        if user is None or user.is_deleted:
            raise NotFoundError("User not found.")
        if not user.password_hash:
            raise ValidationError("This account signs in with an external provider and has no password.")
        if not self._password_hasher.verify(command.current_password, user.password_hash):
            logger.info("change_password: rejected reason=wrong_current user_id=%s", user.id)
            raise ValidationError("Current password is incorrect.")

        now = self._clock()
        self._accounts_port.update_user_password_hash(
            user_id=user.id,
            password_hash=self._password_hasher.hash(command.new_password),
            updated_at=now,
        )
        logger.info("change_password: password_changed user_id=%s", user.id)

        record_audit_entry(
            self._audit_log,
            AuditLogEntry(
                id=str(uuid4()),
                action="password_change",
                user_id=user.id,
                masked_email=mask_email(user.email),
                timestamp=now,
                ip=command.ip or "unknown",
                user_agent=command.user_agent or "unknown",
                success=True,
            ),
        )
