from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class PasswordResetToken:
    token: str
    email: str
    expires_at: datetime
    used: bool
    created_at: datetime
    used_at: datetime | None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_consumable(self, now: datetime) -> bool:
        return not self.used and not self.is_expired(now)
