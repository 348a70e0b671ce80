"""
TTL cache of last-known-good source data.

This module provides:
- CacheStore: thread-safe, TTL-keyed store shared by every in-flight fetch
- cache_key(): the (source type, driver, load) key format

Design decisions:
- One lock guards the entry map; entries are replaced, never mutated
- Payloads are deep-copied on put and get so callers never share the
  cached object
- Expired entries are kept until purged so the use_cached fallback can
  serve stale data when a refresh fails
- Clock is injectable so tests can move time without sleeping
"""
import copy
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


def cache_key(source_type: str, driver_id: str, load_id: str) -> str:
    """Build the cache key for one source of one driver/load pair."""
    return f"{source_type}_{driver_id}_{load_id}"


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload and when it was stored."""
    key: str
    data: Any
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class CacheStore:
    """
    Process-wide cache shared across pipeline invocations.

    ``get`` without ``ignore_expiry`` never returns an entry older than its
    ttl. ``ignore_expiry=True`` is reserved for the use_cached fallback.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str, ignore_expiry: bool = False) -> Optional[Any]:
        """
        Read a cached payload.

        Args:
            key: Cache key
            ignore_expiry: Return the entry even if its ttl has elapsed

        Returns:
            A copy of the cached data, or None if absent (or expired and not ignored)
        """
        entry = self.get_entry(key, ignore_expiry=ignore_expiry)
        return copy.deepcopy(entry.data) if entry else None

    def get_entry(self, key: str, ignore_expiry: bool = False) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or (not ignore_expiry and entry.is_expired(self._clock())):
                self._misses += 1
                return None
            self._hits += 1
            return entry

    def put(self, key: str, data: Any, ttl: float) -> None:
        """Store data under key for ttl seconds."""
        with self._lock:
            self._entries[key] = CacheEntry(
                key=key, data=copy.deepcopy(data), stored_at=self._clock(), ttl=ttl
            )

    def invalidate(self, key: str) -> bool:
        """Drop one entry. Returns True if it existed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for k in expired:
                del self._entries[k]
            return len(expired)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "size": len(self._entries)}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
