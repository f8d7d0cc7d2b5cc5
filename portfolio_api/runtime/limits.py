"""Fixed-window request admission keyed by route and client."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

DEFAULT_LIMIT = 100
DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0


@dataclass
class RateLimitInfo:
    limit: int
    remaining: int
    reset: int

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }


@dataclass
class _WindowRecord:
    count: int
    reset_at: float


class RateLimitExceeded(Exception):
    def __init__(self, retry_after_seconds: float, info: RateLimitInfo | None = None) -> None:
        self.retry_after_seconds = max(0, math.ceil(retry_after_seconds))
        self.info = info
        super().__init__(f"Rate limit exceeded. Try again in {self.retry_after_seconds} seconds")


class FixedWindowRateLimiter:
    """Counts requests per identifier inside a window that starts on the first request."""

    def __init__(
        self,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.sweep_interval_seconds = max(0.0, sweep_interval_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[str, _WindowRecord] = {}
        self._next_sweep_at = clock() + self.sweep_interval_seconds

    def check(
        self,
        identifier: str,
        limit: int = DEFAULT_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
    ) -> RateLimitInfo:
        """Admit one request for ``identifier`` or raise RateLimitExceeded."""
        limit = max(1, limit)
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep_at:
                self._sweep_locked(now)

            record = self._records.get(identifier)
            if record is None or record.reset_at < now:
                reset_at = now + window_seconds
                self._records[identifier] = _WindowRecord(count=1, reset_at=reset_at)
                return RateLimitInfo(limit=limit, remaining=limit - 1, reset=math.floor(reset_at))

            if record.count >= limit:
                info = RateLimitInfo(limit=limit, remaining=0, reset=math.floor(record.reset_at))
                raise RateLimitExceeded(retry_after_seconds=record.reset_at - now, info=info)

            record.count += 1
            return RateLimitInfo(limit=limit, remaining=limit - record.count, reset=math.floor(record.reset_at))

    def sweep(self) -> int:
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        stale = [identifier for identifier, record in self._records.items() if record.reset_at < now]
        for identifier in stale:
            del self._records[identifier]
        self._next_sweep_at = now + self.sweep_interval_seconds
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
