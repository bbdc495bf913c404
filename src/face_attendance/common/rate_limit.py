from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Protocol


@dataclass(frozen=True)
class RateLimitRule:
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def retry_after(self, now: float) -> int:
        return max(1, int(round(self.reset_at - now)))


class RateLimitStore(Protocol):
    """Counter storage for fixed-window rate limiting.

    Implementations must make ``hit`` atomic per key so that a shared store
    (e.g. Redis) can replace the in-memory one when running several workers.
    """

    def hit(self, key: str, *, window_seconds: int, now: float) -> tuple[int, float]:
        """Count one request for ``key``; return (count in window, window reset time)."""

        raise NotImplementedError


class InMemoryRateLimitStore(RateLimitStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._counters: dict[str, tuple[int, float]] = {}

    def hit(self, key: str, *, window_seconds: int, now: float) -> tuple[int, float]:
        with self._lock:
            count, reset_at = self._counters.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + window_seconds
                self._purge(now)
            count += 1
            self._counters[key] = (count, reset_at)
            return count, reset_at

    def _purge(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._counters.items() if now >= reset_at]
        for k in expired:
            del self._counters[k]


class RateLimiter:
    def __init__(
        self,
        store: RateLimitStore,
        rules: Mapping[str, RateLimitRule],
        *,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._rules = dict(rules)
        self._clock = clock

    @classmethod
    def from_settings(cls, limits: Mapping[str, tuple[int, int]], store: RateLimitStore | None = None) -> "RateLimiter":
        rules = {name: RateLimitRule(limit=int(n), window_seconds=int(w)) for name, (n, w) in limits.items()}
        return cls(store or InMemoryRateLimitStore(), rules)

    def now(self) -> float:
        return self._clock()

    def check(self, rule_name: str, client_key: str) -> RateLimitResult:
        rule = self._rules[rule_name]
        count, reset_at = self._store.hit(
            f"rate:{rule_name}:{client_key}", window_seconds=rule.window_seconds, now=self._clock()
        )
        if count > rule.limit:
            return RateLimitResult(allowed=False, limit=rule.limit, remaining=0, reset_at=reset_at)
        return RateLimitResult(allowed=True, limit=rule.limit, remaining=rule.limit - count, reset_at=reset_at)
