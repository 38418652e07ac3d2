"""
Scrape result cache and in-flight request collapsing.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Sequence
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 15 * 60
DEFAULT_MAX_SIZE = 1000


def build_cache_key(
    supplier: str,
    category: str | None = None,
    urls: Sequence[str] | None = None,
) -> str:
    """
    Deterministic key for one scrape request.

    URLs are sorted so requests that differ only in URL order share a key.
    """

    parts = [supplier]
    if category:
        parts.append(category)
    if urls:
        parts.append("|".join(sorted(urls)))
    return ":".join(parts)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    key: str
    payload: T
    created_at: float
    expires_at: float


@dataclass(frozen=True)
class CacheStats:
    size: int
    max_size: int
    hits: int
    misses: int
    oldest_key: str | None = None
    oldest_age_seconds: float | None = None

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


class ScrapeResultCache(Generic[T]):
    """
    Bounded TTL cache with least-recently-used eviction.

    Expired entries are dropped lazily on ``get`` and actively by ``prune``.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = max(0.001, ttl_seconds)
        self._max_size = max(1, max_size)
        self._clock = clock
        # Ordered by access: first item is the least recently used.
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> T | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() > entry.expires_at:
                del self._entries[key]
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.payload

    def set(self, key: str, value: T, ttl_seconds: float | None = None) -> None:
        ttl = self._ttl_seconds if ttl_seconds is None else max(0.001, ttl_seconds)
        now = self._clock()
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_size:
                self._entries.popitem(last=False)
            self._entries[key] = CacheEntry(
                key=key,
                payload=value,
                created_at=now,
                expires_at=now + ttl,
            )
            self._entries.move_to_end(key)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def prune(self) -> int:
        """
        Remove every expired entry and return how many were removed.
        """

        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def stats(self) -> CacheStats:
        now = self._clock()
        with self._lock:
            oldest = next(iter(self._entries.values()), None)
            return CacheStats(
                size=len(self._entries),
                max_size=self._max_size,
                hits=self._hits,
                misses=self._misses,
                oldest_key=oldest.key if oldest else None,
                oldest_age_seconds=(now - oldest.created_at) if oldest else None,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RequestDeduplicator(Generic[T]):
    """
    Collapses concurrent calls for the same key into one factory invocation.

    The first caller for a key runs the factory; callers arriving while it is
    outstanding block on the same future and get the same result or error.
    The in-flight entry is removed once, when the factory settles, before the
    outcome is handed to anyone.
    """

    def __init__(self) -> None:
        self._pending: dict[str, Future[T]] = {}
        self._lock = threading.Lock()

    def deduplicate(self, key: str, factory: Callable[[], T]) -> T:
        with self._lock:
            pending = self._pending.get(key)
            if pending is None:
                future: Future[T] = Future()
                self._pending[key] = future

        if pending is not None:
            return pending.result()

        try:
            result = factory()
        except BaseException as exc:
            self._settle(key)
            future.set_exception(exc)
            raise

        self._settle(key)
        future.set_result(result)
        return result

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def _settle(self, key: str) -> None:
        with self._lock:
            self._pending.pop(key, None)


def describe_cache(cache: ScrapeResultCache[Any]) -> dict[str, Any]:
    stats = cache.stats()
    return {
        "size": stats.size,
        "max_size": stats.max_size,
        "hit_rate": round(stats.hit_rate, 4),
        "oldest_key": stats.oldest_key,
        "oldest_age_seconds": stats.oldest_age_seconds,
    }
