from __future__ import annotations

import logging

from member_auth.application.ports.audit_log_port import AuditLogPort
from member_auth.domain.entities.audit import AuditLogEntry


logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")


def record_audit_entry(audit_log: AuditLogPort, entry: AuditLogEntry) -> bool:
    """Append ``entry`` and mirror it to the ``audit`` logger.

    Returns False when the store write failed; the failure is logged and
    never raised, the audited action has already happened.
    """
    audit_logger.info(
        "audit: action=%s user_id=%s email=%s ip=%s user_agent=%s success=%s entry_id=%s",
        entry.action,
        entry.user_id,
        entry.masked_email,
        entry.ip,
        entry.user_agent,
        entry.success,
        entry.id,
    )
    try:
        audit_log.append(entry=entry)
    except Exception:
        logger.exception(
            "audit_trail: append_failed action=%s user_id=%s entry_id=%s",
            entry.action,
            entry.user_id,
            entry.id,
        )
        return False
    return True
