from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.engine import Engine

from member_auth.application.ports.audit_log_port import AuditLogPort
from member_auth.domain.entities.audit import AuditLogEntry
from member_auth.infrastructure.db.errors import store_errors
from member_auth.infrastructure.db.mappers.accounts_mapper import map_audit_entry_to_params


class SqlAuditLogRepository(AuditLogPort):
    def __init__(self, engine: Engine):
        self._engine = engine

    def append(self, *, entry: AuditLogEntry) -> None:
        sql = """
            INSERT INTO public.audit_logs (
                id, action, user_id, masked_email, ip, user_agent, success, created_at
            ) VALUES (
                :id, :action, :user_id, :masked_email, :ip, :user_agent, :success, :created_at
            )
        """
        with store_errors("append_audit_log"):
            with self._engine.begin() as conn:
                conn.execute(text(sql), map_audit_entry_to_params(entry))
