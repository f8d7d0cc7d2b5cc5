"""Small thread-safe TTL cache for collaborator-private, single-type lookups."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass
class _CacheItem(Generic[T]):
    value: T
    expires_at: float


class TTLCache(Generic[T]):
    """String-keyed cache where every value shares one freshness window."""

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = max(0.0, ttl_seconds)
        self._clock = clock
        self._data: dict[str, _CacheItem[T]] = {}
        self._lock = Lock()

    def get(self, key: str) -> T | None:
        now = self._clock()
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            if item.expires_at <= now:
                self._data.pop(key, None)
                return None
            return item.value

    def set(self, key: str, value: T) -> None:
        with self._lock:
            self._data[key] = _CacheItem(value=value, expires_at=self._clock() + self.ttl_seconds)

    def prune(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [key for key, item in self._data.items() if item.expires_at <= now]
            for key in stale:
                del self._data[key]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
