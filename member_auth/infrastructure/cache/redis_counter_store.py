from __future__ import annotations

import logging

import redis

from member_auth.application.ports.counter_store_port import CounterStorePort


logger = logging.getLogger(__name__)


class RedisCounterStore(CounterStorePort):
    """Sorted-set operations backing the rate limiter.

    The redis client is thread safe and connects lazily; errors (including
    socket timeouts) propagate to the limiter, which decides to fail open.
    """

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, timeout_seconds: float) -> RedisCounterStore:
        logger.debug("redis_counter_store: connecting timeout=%s", timeout_seconds)
        client = redis.Redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
            decode_responses=True,
        )
        return cls(client)

    def range_by_score(self, *, key: str, min_score: float, max_score: float) -> list[tuple[str, float]]:
        entries = self._client.zrangebyscore(key, min_score, max_score, withscores=True)
        return [(str(member), float(score)) for member, score in entries]

    def add_scored(self, *, key: str, score: float, member: str) -> None:
        self._client.zadd(key, {member: score})

    def remove_range_by_score(self, *, key: str, min_score: float, max_score: float) -> int:
        return int(self._client.zremrangebyscore(key, min_score, max_score))

    def expire(self, *, key: str, seconds: int) -> None:
        self._client.expire(key, max(1, int(seconds)))
