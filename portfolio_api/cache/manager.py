"""Process-wide cache for external reads with TTL, tags, LRU bounds and single-flight.

All state is plain dicts and counters touched from one event loop. ``get``
checks for a pending fetch and registers a new one without awaiting in
between; that gap-free sequence is what keeps concurrent misses down to one
upstream call. Driving one manager from several threads would need a lock
around that sequence.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import asdict, is_dataclass
from typing import Any, Awaitable, Callable, Iterable, Pattern, TypeVar

from portfolio_api.cache.types import (
    AccessedEntry,
    CacheConfig,
    CacheEntry,
    CacheEntryDetails,
    CacheStatistics,
    CleanupStats,
    EvictionCallback,
    MemoryUsage,
)

T = TypeVar("T")
LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_SIZE_BYTES = 50 * 1024 * 1024
DEFAULT_MAX_ENTRIES = 1000
DEFAULT_CLEANUP_INTERVAL_SECONDS = 300.0
TOP_ACCESSED_LIMIT = 10


def to_jsonable(data: Any) -> Any:
    if is_dataclass(data) and not isinstance(data, type):
        return asdict(data)
    if isinstance(data, (list, tuple, set, frozenset)):
        return [to_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {str(key): to_jsonable(value) for key, value in data.items()}
    return data


def calculate_size(data: Any) -> int:
    """Rough resident size: UTF-8 length of the JSON encoding, 0 if not encodable."""
    try:
        encoded = json.dumps(to_jsonable(data), default=str, ensure_ascii=False)
    except (TypeError, ValueError, RecursionError):
        return 0
    return len(encoded.encode("utf-8"))


class CacheManager:
    def __init__(
        self,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        enable_stats: bool = False,
        on_eviction: EvictionCallback | None = None,
        cleanup_interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_size_bytes = max(1, int(max_size_bytes))
        self.max_entries = max(1, int(max_entries))
        self.enable_stats = enable_stats
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._on_eviction = on_eviction
        self._clock = clock
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._pending: dict[str, asyncio.Future[Any]] = {}
        self._total_size = 0
        self._cleanup_enabled = cleanup_interval_seconds > 0
        self._cleanup_task: asyncio.Task[None] | None = None
        self._reset_counters()
        self.start_cleanup()
        LOGGER.info(
            "cache manager initialised: max_size_bytes=%s max_entries=%s enable_stats=%s cleanup_interval_seconds=%s",
            self.max_size_bytes,
            self.max_entries,
            self.enable_stats,
            self.cleanup_interval_seconds,
        )

    def _reset_counters(self) -> None:
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._total_cleanups = 0
        self._total_expired_removed = 0
        self._last_cleanup: float | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def cleanup_running(self) -> bool:
        return self._cleanup_task is not None and not self._cleanup_task.done()

    async def get(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]] | None = None,
        config: CacheConfig | None = None,
    ) -> T | None:
        """Return the cached value for ``key``, fetching it once on a miss.

        Without a fetcher a miss returns None. Concurrent misses for the same
        key share a single fetcher call and all observe its result or error.
        A None result is returned but not stored.
        """
        self.start_cleanup()
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and entry.is_valid(now):
            if self.enable_stats:
                self._hits += 1
            entry.last_accessed = now
            entry.access_count += 1
            LOGGER.debug("cache hit: key=%s expires_in=%ss", key, round(entry.expires - now))
            return entry.data

        if self.enable_stats:
            self._misses += 1
        if fetcher is None:
            LOGGER.debug("cache miss: key=%s fetcher=none", key)
            return None

        pending = self._pending.get(key)
        if pending is not None and not pending.done():
            LOGGER.debug("cache pending: key=%s waiting for in-flight fetch", key)
        else:
            LOGGER.debug("cache miss: key=%s fetching", key)
            pending = asyncio.ensure_future(self._fetch_and_store(key, fetcher, config))
            self._pending[key] = pending
            pending.add_done_callback(lambda task, key=key: self._release_pending(key, task))
        return await asyncio.shield(pending)

    async def _fetch_and_store(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        config: CacheConfig | None,
    ) -> T | None:
        try:
            data = await fetcher()
        except Exception as error:
            LOGGER.warning("cache fetch failed: key=%s error=%s", key, error)
            raise
        if data is not None:
            self.set(key, data, config)
        return data

    def _release_pending(self, key: str, task: asyncio.Future[Any]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled():
            # Waiters see the error through shield(); this marks it retrieved
            # when every waiter was cancelled first.
            task.exception()

    def set(self, key: str, data: Any, config: CacheConfig | None = None) -> None:
        """Store ``data`` under ``key`` as a fresh entry, evicting LRU entries to make room."""
        config = config or CacheConfig()
        now = self._clock()
        size = calculate_size(data)
        if size > self.max_size_bytes:
            # Stored anyway; every other entry is evicted to make room.
            LOGGER.warning(
                "cache entry exceeds byte ceiling: key=%s size=%s max_size_bytes=%s", key, size, self.max_size_bytes
            )

        previous = self._entries.pop(key, None)
        if previous is not None:
            self._total_size -= previous.size
        self._evict_if_needed(size)

        self._entries[key] = CacheEntry(
            data=data,
            key=key,
            created=now,
            expires=now + config.ttl_seconds,
            last_accessed=now,
            access_count=1,
            size=size,
            tags=frozenset(config.tags),
        )
        self._total_size += size
        LOGGER.debug("cache set: key=%s ttl=%ss size=%s", key, config.ttl_seconds, size)

    def _evict_if_needed(self, incoming_size: int) -> None:
        while self._entries and (
            len(self._entries) >= self.max_entries
            or self._total_size + incoming_size > self.max_size_bytes
        ):
            self._evict_lru()

    def _evict_lru(self) -> None:
        # min() keeps the first minimum in insertion order on ties.
        lru_key = min(self._entries, key=lambda candidate: self._entries[candidate].last_accessed)
        entry = self._remove(lru_key)
        if self.enable_stats:
            self._evictions += 1
        LOGGER.debug("cache evicted: key=%s reason=lru", lru_key)
        self._notify_eviction(lru_key, entry)

    def _remove(self, key: str) -> CacheEntry[Any]:
        entry = self._entries.pop(key)
        self._total_size -= entry.size
        return entry

    def _notify_eviction(self, key: str, entry: CacheEntry[Any]) -> None:
        if self._on_eviction is None:
            return
        try:
            self._on_eviction(key, entry)
        except Exception:
            LOGGER.exception("eviction callback failed: key=%s", key)

    def invalidate(self, pattern: str | Pattern[str]) -> int:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        keys = [key for key in self._entries if regex.search(key)]
        for key in keys:
            self._remove(key)
            LOGGER.debug("cache invalidated: key=%s", key)
        return len(keys)

    def invalidate_by_tags(self, tags: Iterable[str]) -> int:
        wanted = set(tags)
        keys = [key for key, entry in self._entries.items() if entry.tags & wanted]
        for key in keys:
            self._remove(key)
            LOGGER.debug("cache invalidated: key=%s tags=%s", key, ",".join(sorted(wanted)))
        return len(keys)

    def cleanup_expired(self) -> int:
        """Drop every entry whose expiry has passed; returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
        for key in expired:
            entry = self._remove(key)
            if self.enable_stats:
                self._evictions += 1
            self._notify_eviction(key, entry)
            LOGGER.debug("cache expired: key=%s removed during cleanup", key)

        if self.enable_stats:
            self._total_cleanups += 1
            self._total_expired_removed += len(expired)
            self._last_cleanup = now
        if expired:
            LOGGER.info("cache cleanup: removed=%d remaining=%d", len(expired), len(self._entries))
        return len(expired)

    def start_cleanup(self) -> bool:
        """Start the periodic expiry sweep on the running loop, if any."""
        if not self._cleanup_enabled:
            return False
        if self.cleanup_running:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._cleanup_task = loop.create_task(self._cleanup_loop(), name="cache-cleanup")
        return True

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_seconds)
            try:
                self.cleanup_expired()
            except Exception:
                LOGGER.exception("cache cleanup run failed")

    def get_entry(self, key: str) -> CacheEntry[Any] | None:
        return self._entries.get(key)

    def get_all_entries(self) -> dict[str, CacheEntry[Any]]:
        return dict(self._entries)

    def get_stats(self) -> CacheStatistics:
        now = self._clock()
        entries = list(self._entries.values())

        top = sorted(entries, key=lambda entry: entry.access_count, reverse=True)[:TOP_ACCESSED_LIMIT]
        details = sorted(
            (self._details(entry, now) for entry in entries),
            key=lambda detail: detail.created,
            reverse=True,
        )
        created = [entry.created for entry in entries]
        traffic = self._hits + self._misses

        return CacheStatistics(
            entries=len(entries),
            size=self._total_size,
            hits=self._hits,
            misses=self._misses,
            hit_rate=(self._hits / traffic) if traffic else 0.0,
            evictions=self._evictions,
            oldest_entry=min(created) if created else None,
            newest_entry=max(created) if created else None,
            memory_usage=MemoryUsage(
                used=self._total_size,
                limit=self.max_size_bytes,
                percentage=self._total_size / self.max_size_bytes * 100.0,
            ),
            top_accessed=[
                AccessedEntry(key=entry.key, access_count=entry.access_count, last_accessed=entry.last_accessed)
                for entry in top
            ],
            all_entries=details,
            cleanup=CleanupStats(
                enabled=self._cleanup_enabled,
                interval_seconds=self.cleanup_interval_seconds,
                last_cleanup=self._last_cleanup,
                total_cleanups=self._total_cleanups,
                total_expired_removed=self._total_expired_removed,
            ),
            expired_entries=[detail for detail in details if detail.is_expired],
        )

    @staticmethod
    def _details(entry: CacheEntry[Any], now: float) -> CacheEntryDetails:
        return CacheEntryDetails(
            key=entry.key,
            created=entry.created,
            expires=entry.expires,
            last_accessed=entry.last_accessed,
            access_count=entry.access_count,
            size=entry.size,
            tags=sorted(entry.tags),
            ttl=entry.expires - entry.created,
            remaining_ttl=max(0.0, entry.expires - now),
            is_expired=not entry.is_valid(now),
        )

    def clear(self) -> None:
        self._entries.clear()
        self._pending.clear()
        self._total_size = 0
        self._reset_counters()
        LOGGER.debug("cache cleared")

    def destroy(self) -> None:
        """Stop the expiry sweep for good and clear everything. Safe to call repeatedly."""
        self._cleanup_enabled = False
        task, self._cleanup_task = self._cleanup_task, None
        if task is not None and not task.done():
            task.cancel()
        self.clear()
        LOGGER.info("cache manager destroyed")
