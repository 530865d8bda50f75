from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset_at_epoch_seconds: int
