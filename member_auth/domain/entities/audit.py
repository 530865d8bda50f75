from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


AuditAction = Literal["account_deletion", "password_change"]


@dataclass(frozen=True)
class AuditLogEntry:
    id: str
    action: AuditAction
    user_id: str
    masked_email: str
    timestamp: datetime
    ip: str
    user_agent: str
    success: bool
