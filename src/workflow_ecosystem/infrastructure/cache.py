"""Thread-safe time-to-live cache with an injectable clock.

Services own their caches explicitly instead of sharing module-level state.
Passing a fake ``clock`` lets tests control expiry deterministically::

    now = [0.0]
    cache = TTLCache(ttl=300, clock=lambda: now[0])
    cache.set("k", 1)
    now[0] = 301
    assert cache.get("k") is None
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Hashable
from typing import Any

from workflow_ecosystem.domain.values import CacheStats

Clock = Callable[[], float]


class TTLCache:
    """Key-value cache whose entries expire *ttl* seconds after being set.

    Expired entries are not returned by ``get``.  With *keep_stale* they are
    kept until overwritten or cleared, so ``get_stale`` can still serve them
    when a fresh value cannot be computed; without it every ``set`` purges
    them.

    Parameters
    ----------
    ttl:
        Entry lifetime in seconds.  ``0`` disables caching.
    clock:
        Zero-argument callable returning the current time in seconds.
    max_entries:
        Upper bound on stored entries; the oldest entry is evicted first.
        ``0`` means unlimited.
    keep_stale:
        Keep expired entries for ``get_stale``.  Leave it on only for caches
        with a bounded key set.
    """

    def __init__(
        self,
        ttl: float,
        clock: Clock | None = None,
        max_entries: int = 0,
        keep_stale: bool = True,
    ) -> None:
        self._ttl = ttl
        self._clock = clock or time.time
        self._max_entries = max_entries
        self._keep_stale = keep_stale
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def now(self) -> float:
        """Return the cache's notion of the current time."""
        return self._clock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the fresh value for *key*, or *default*."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return default
        stored_at, value = entry
        if now - stored_at >= self._ttl:
            return default
        return value

    def get_stale(self, key: Hashable, default: Any = None) -> Any:
        """Return the value for *key* regardless of age, or *default*."""
        with self._lock:
            entry = self._entries.get(key)
        return default if entry is None else entry[1]

    def set(self, key: Hashable, value: Any) -> None:
        """Store *value* under *key*, stamped with the current time."""
        now = self._clock()
        with self._lock:
            self._entries.pop(key, None)
            if not self._keep_stale:
                expired = [
                    k for k, (stored_at, _) in self._entries.items()
                    if now - stored_at >= self._ttl
                ]
                for k in expired:
                    del self._entries[k]
            self._entries[key] = (now, value)
            if self._max_entries > 0 and len(self._entries) > self._max_entries:
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]

    def invalidate(self, key: Hashable) -> bool:
        """Drop *key*. Returns ``True`` if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        """Return entry count and the age of the oldest entry."""
        now = self._clock()
        with self._lock:
            stamps = [stored_at for stored_at, _ in self._entries.values()]
        if not stamps:
            return CacheStats()
        return CacheStats(entries=len(stamps), oldest_entry_age=max(0.0, now - min(stamps)))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING


_MISSING = object()
