from __future__ import annotations

from typing import Protocol

from member_auth.domain.entities.audit import AuditLogEntry


class AuditLogPort(Protocol):
    def append(self, *, entry: AuditLogEntry) -> None:
        ...
