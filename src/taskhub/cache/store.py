"""In-memory TTL cache.

Learn: Entries expire two ways:
1. Lazily — get() notices a stale entry, evicts it and reports a miss
2. Periodically — CacheSweeper calls sweep() so entries that are never
   read again don't pile up forever

An entry is fresh while (now - inserted_at) <= ttl. Everything runs on
the event loop thread and no method awaits, so a sweep can never
interleave with a read.

clear(pattern) is a plain substring scan over every key. Fine at the
sizes this cache sees; there is no key index.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from starlette.requests import HTTPConnection


@dataclass
class CacheEntry:
    value: Any
    inserted_at: float
    ttl: int

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at > self.ttl


class TTLCache:
    """String-keyed cache with per-entry time-to-live (seconds)."""

    def __init__(
        self,
        default_ttl: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or `default` if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return default

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self.evictions += 1
            self.misses += 1
            return default

        self.hits += 1
        return entry.value

    def peek(self, key: str, default: Any = None) -> Any:
        """Like get(), but leaves the hit/miss counters alone.

        For bookkeeping entries (rate-limit counters) that would otherwise
        swamp the hit rate of cached responses.
        """
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return default
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Insert or overwrite `key`. Overwriting resets the insertion time."""
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self._entries[key] = CacheEntry(value=value, inserted_at=self._clock(), ttl=ttl)

    def clear(self, pattern: Optional[str] = None) -> int:
        """Drop everything, or every key containing `pattern`. Returns the count."""
        if not pattern:
            count = len(self._entries)
            self._entries.clear()
            return count

        doomed = [key for key in self._entries if pattern in key]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def sweep(self) -> int:
        """Evict every expired entry. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self.evictions += len(expired)
        return len(expired)

    def stats(self) -> dict[str, int]:
        return {
            "entries": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
        }

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        return len(self._entries)


def cache_key_for(request: HTTPConnection, custom_key: Optional[str] = None) -> str:
    """Derive a cache key from the request path and query string."""
    if custom_key:
        return custom_key
    path = request.url.path
    query = request.url.query
    return f"{path}?{query}" if query else path


def get_cache(request: HTTPConnection) -> TTLCache:
    """FastAPI dependency — the application's cache instance."""
    return request.app.state.cache
