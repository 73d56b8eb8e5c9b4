"""
In-memory TTL caches for embeddings, searches and responses.

Entries are immutable once written; a concurrent writer simply replaces
an equivalent value, so plain dict operations on the event loop are
enough. Expired entries are dropped lazily on read and by a periodic
sweep task owned by CacheService.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from ask_ed.config import CACHE
from ask_ed.metrics import CACHE_LOOKUPS

logger = logging.getLogger(__name__)

T = TypeVar("T")

LONG_KEY_THRESHOLD = 100
LONG_KEY_EDGE = 50
RESPONSE_KEY_CONTEXT_CHARS = 200


def _now_ms() -> float:
    return time.time() * 1000


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value with its write time and lifetime (milliseconds)."""

    data: T
    timestamp: float
    ttl: float

    def is_expired(self, now_ms: float) -> bool:
        return now_ms > self.timestamp + self.ttl


class TTLCache:
    """
    Key-value store with per-entry time-to-live.

    Args:
        name: Cache name used in metrics and stats.
        default_ttl_ms: TTL applied when set() is given none.
        clock: Millisecond clock, replaceable in tests.
    """

    def __init__(
        self,
        name: str,
        default_ttl_ms: float,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        self.name = name
        self.default_ttl_ms = default_ttl_ms
        self._clock = clock
        self._store: dict[str, CacheEntry[Any]] = {}
        self._hits = 0
        self._misses = 0

    def set(self, key: str, data: Any, ttl_ms: float | None = None) -> None:
        self._store[key] = CacheEntry(
            data=data,
            timestamp=self._clock(),
            ttl=self.default_ttl_ms if ttl_ms is None else ttl_ms,
        )

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        entry = self._store.get(key)
        if entry is None:
            self._record(hit=False)
            return None

        if entry.is_expired(self._clock()):
            self._store.pop(key, None)
            self._record(hit=False)
            return None

        self._record(hit=True)
        return entry.data

    def has(self, key: str) -> bool:
        entry = self._store.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            self._store.pop(key, None)
            return False
        return True

    def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def clear(self) -> None:
        self._store.clear()

    def cleanup(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            self._store.pop(key, None)
        return len(expired)

    def size(self) -> int:
        self.cleanup()
        return len(self._store)

    def get_stats(self) -> dict[str, Any]:
        self.cleanup()
        return {
            "size": len(self._store),
            "keys": list(self._store.keys()),
            "hits": self._hits,
            "misses": self._misses,
        }

    def _record(self, hit: bool) -> None:
        if hit:
            self._hits += 1
        else:
            self._misses += 1
        CACHE_LOOKUPS.labels(cache=self.name, result="hit" if hit else "miss").inc()


def generate_embedding_key(text: str) -> str:
    """Key for an embedding; long text is abbreviated to its edges and length."""
    if len(text) > LONG_KEY_THRESHOLD:
        text = f"{text[:LONG_KEY_EDGE]}...{text[-LONG_KEY_EDGE:]}_{len(text)}"
    return f"embedding:{text}"


def generate_search_key(query: str, setting_type: str | None = None) -> str:
    return f"search:{query.lower().strip()}:{setting_type or 'default'}"


def generate_context_key(query: str, setting_type: str | None = None) -> str:
    """Key for an assembled context, kept apart from raw search keys."""
    return generate_search_key(f"context_{query}", setting_type)


def generate_response_key(context: str, query: str) -> str:
    return f"response:{context[:RESPONSE_KEY_CONTEXT_CHARS]}:{query}"


class CacheService:
    """
    Owns the three process-wide caches and their sweep task.

    Constructed once at startup and injected where caching is needed.
    """

    def __init__(
        self,
        embedding_ttl_ms: float | None = None,
        search_ttl_ms: float | None = None,
        response_ttl_ms: float | None = None,
        sweep_interval: float | None = None,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        """
        Initialize caches.

        Args:
            embedding_ttl_ms: Default embedding TTL.
            search_ttl_ms: Default search/context TTL.
            response_ttl_ms: Default generated-response TTL.
            sweep_interval: Seconds between expiry sweeps.
            clock: Millisecond clock shared by all caches.
        """
        self.embeddings = TTLCache(
            "embeddings",
            CACHE.EMBEDDING_TTL_MS if embedding_ttl_ms is None else embedding_ttl_ms,
            clock=clock,
        )
        self.search = TTLCache(
            "search", CACHE.SEARCH_TTL_MS if search_ttl_ms is None else search_ttl_ms, clock=clock
        )
        self.responses = TTLCache(
            "response",
            CACHE.RESPONSE_TTL_MS if response_ttl_ms is None else response_ttl_ms,
            clock=clock,
        )
        self.sweep_interval = sweep_interval or CACHE.SWEEP_INTERVAL_SECONDS
        self._sweep_task: asyncio.Task[None] | None = None

    @property
    def caches(self) -> tuple[TTLCache, ...]:
        return (self.embeddings, self.search, self.responses)

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Launch the periodic sweep on the running event loop."""
        if self.running:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="cache-sweep")
        logger.info(f"Cache sweep started (every {self.sweep_interval:.0f}s)")

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        self._sweep_task = None
        logger.info("Cache sweep stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    def sweep(self) -> int:
        """Remove expired entries from every cache."""
        removed = sum(cache.cleanup() for cache in self.caches)
        if removed:
            logger.debug(f"Cache sweep removed {removed} expired entries")
        return removed

    async def _memoize(
        self, cache: TTLCache, key: str, compute: Callable[[], Awaitable[T]]
    ) -> T:
        cached = cache.get(key)
        if cached is not None:
            return cached
        result = await compute()
        cache.set(key, result)
        return result

    async def cached_embedding(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        return await self._memoize(self.embeddings, key, compute)

    async def cached_search(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        return await self._memoize(self.search, key, compute)

    async def cached_response(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        return await self._memoize(self.responses, key, compute)

    def get_metrics(self) -> dict[str, Any]:
        return {
            "embeddings": self.embeddings.get_stats(),
            "search": self.search.get_stats(),
            "response": self.responses.get_stats(),
            "timestamp": datetime.now(UTC).isoformat(),
        }

    def clear_all(self) -> None:
        for cache in self.caches:
            cache.clear()
        logger.info("All caches cleared")
