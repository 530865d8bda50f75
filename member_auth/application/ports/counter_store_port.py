from __future__ import annotations

from typing import Protocol


class CounterStorePort(Protocol):
    def range_by_score(self, *, key: str, min_score: float, max_score: float) -> list[tuple[str, float]]:
        ...

    def add_scored(self, *, key: str, score: float, member: str) -> None:
        ...

    def remove_range_by_score(self, *, key: str, min_score: float, max_score: float) -> int:
        ...

    def expire(self, *, key: str, seconds: int) -> None:
        ...
