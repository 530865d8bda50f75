from __future__ import annotations

import time
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def epoch_ms() -> int:
    return int(time.time() * 1000)
