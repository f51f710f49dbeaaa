"""
validatornet/fetch/cache.py

Time-to-live cache for network-wide query results.

Entries are visible only while ``now < expires_at``; expired entries behave
exactly like missing ones and are dropped on the next read or sweep.
"""

from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, List, Optional
import logging
import time

logger = logging.getLogger("validatornet.fetch.cache")


@dataclass
class CacheEntry:
    """Single cached value."""
    key: str
    value: Any
    expires_at: float  # seconds, on the cache clock

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResultCache:
    """
    Keyed TTL cache.

    Usage:
        cache = ResultCache()
        cache.set("stakeParams", "1000", ttl_ms=60_000)
        cache.get("stakeParams")   # "1000" for the next minute, then None
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            clock: Returns the current time in seconds
        """
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()

        # Stats
        self._hits = 0
        self._misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key`` or ``default``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                del self._entries[key]
                entry = None

            if entry is None:
                self._misses += 1
                return default
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl_ms: float) -> None:
        """Store ``value`` for ``ttl_ms`` milliseconds, replacing any entry."""
        with self._lock:
            if ttl_ms <= 0:
                self._entries.pop(key, None)
                return
            expires_at = self._clock() + ttl_ms / 1000.0
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=expires_at)
        logger.debug(f"Cached {key} for {ttl_ms / 1000.0:.1f}s")

    def delete(self, key: str) -> bool:
        """Drop ``key``. Returns True if a live entry was removed."""
        with self._lock:
            entry = self._entries.pop(key, None)
            return entry is not None and not entry.is_expired(self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def keys(self) -> List[str]:
        """Keys of live entries."""
        with self._lock:
            now = self._clock()
            return [k for k, e in self._entries.items() if not e.is_expired(now)]

    def ttl_remaining(self, key: str) -> Optional[float]:
        """Seconds until ``key`` expires, or None if it is not live."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            remaining = entry.expires_at - self._clock()
            return remaining if remaining > 0 else None

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        return len(self.keys())

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "entries": len(self),
            "hits": self._hits,
            "misses": self._misses,
        }
