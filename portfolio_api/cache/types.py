"""Typed records shared by the cache manager and its callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 3600.0


@dataclass
class CacheConfig:
    ttl_seconds: float = DEFAULT_TTL_SECONDS
    tags: tuple[str, ...] | list[str] = ()


@dataclass
class CacheEntry(Generic[T]):
    """One resident value plus the bookkeeping used for expiry and LRU."""

    data: T
    key: str
    created: float
    expires: float
    last_accessed: float
    access_count: int = 1
    size: int = 0
    tags: frozenset[str] = field(default_factory=frozenset)

    def is_valid(self, now: float) -> bool:
        return now < self.expires


EvictionCallback = Callable[[str, CacheEntry[Any]], None]


@dataclass
class CacheEntryDetails:
    key: str
    created: float
    expires: float
    last_accessed: float
    access_count: int
    size: int
    tags: list[str]
    ttl: float
    remaining_ttl: float
    is_expired: bool


@dataclass
class AccessedEntry:
    key: str
    access_count: int
    last_accessed: float


@dataclass
class MemoryUsage:
    used: int
    limit: int
    percentage: float


@dataclass
class CleanupStats:
    enabled: bool
    interval_seconds: float
    last_cleanup: float | None
    total_cleanups: int
    total_expired_removed: int


@dataclass
class CacheStatistics:
    entries: int
    size: int
    hits: int
    misses: int
    hit_rate: float
    evictions: int
    oldest_entry: float | None
    newest_entry: float | None
    memory_usage: MemoryUsage
    top_accessed: list[AccessedEntry]
    all_entries: list[CacheEntryDetails]
    cleanup: CleanupStats
    expired_entries: list[CacheEntryDetails]


@dataclass(frozen=True)
class CacheTTL:
    """Default freshness per cache key namespace, in seconds."""

    projects_list: int = 3600
    projects_detail: int = 300
    people_list: int = 7200
    people_detail: int = 600
    status: int = 30
    commits: int = 300
    tags: int = 86400
    search: int = 300
