from __future__ import annotations

import ipaddress
import logging
import math
from typing import Callable, Iterable
from uuid import uuid4

from member_auth.application.ports.counter_store_port import CounterStorePort
from member_auth.domain.entities.rate_limit import RateLimitResult
from member_auth.shared.clock import epoch_ms


logger = logging.getLogger(__name__)

UNKNOWN_CALLER = "unknown"


def client_identity(*, forwarded_for: str | None, real_ip: str | None = None) -> str:
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return UNKNOWN_CALLER


def build_rate_limit_key(purpose: str, caller: str) -> str:
    return f"{purpose}:{caller}"


def ip_in_networks(caller: str, networks: Iterable[str]) -> bool:
    """False for callers that are not a parseable IP, including UNKNOWN_CALLER."""
    try:
        address = ipaddress.ip_address(caller)
    except ValueError:
        return False
    return any(address in ipaddress.ip_network(network, strict=False) for network in networks)


class RateLimiter:
    """Sliding-window log limiter.

    Best effort: two racing requests may both be admitted at the boundary.
    When the counter store fails the request is admitted (fail open) and the
    failure is logged, never surfaced to the caller.
    """

    def __init__(self, *, counter_store: CounterStorePort, clock_ms: Callable[[], int] = epoch_ms):
        self._counter_store = counter_store
        self._clock_ms = clock_ms

    def allow(self, *, key: str, window_ms: int, max_requests: int) -> RateLimitResult:
        now = self._clock_ms()
        window_start = now - window_ms
        try:
            entries = self._counter_store.range_by_score(key=key, min_score=window_start, max_score=now)
            count = len(entries)

            if count >= max_requests:
                oldest = min((score for _, score in entries), default=now)
                return RateLimitResult(
                    success=False,
                    limit=max_requests,
                    remaining=0,
                    reset_at_epoch_seconds=math.ceil((oldest + window_ms) / 1000),
                )

            self._counter_store.add_scored(key=key, score=now, member=f"{now}-{uuid4().hex}")
            self._counter_store.remove_range_by_score(key=key, min_score=0, max_score=window_start)
            self._counter_store.expire(key=key, seconds=math.ceil(window_ms / 1000))
        except Exception:
            logger.exception("rate_limiter: counter_store_unavailable key=%s action=fail_open", key)
            return RateLimitResult(
                success=True,
                limit=max_requests,
                remaining=max_requests,
                reset_at_epoch_seconds=0,
            )

        return RateLimitResult(
            success=True,
            limit=max_requests,
            remaining=max_requests - count - 1,
            reset_at_epoch_seconds=math.ceil((now + window_ms) / 1000),
        )
