"""
Per-category in-memory store with TTL expiry and FIFO capacity eviction.
"""
import threading
import logging
from collections import OrderedDict
from typing import Callable, Optional

from .core import CacheCategory, CacheEntry, CachedResponse
from .ttl_policies import CachePolicy

logger = logging.getLogger("cache.store")


class CategoryStore:
    """
    Holds the entries of a single cache category.

    Entries are kept in write order, so the first item is always the
    oldest write. All access goes through one lock per store.
    """

    def __init__(
        self,
        category: CacheCategory,
        policy: CachePolicy,
        clock: Callable[[], float],
    ):
        self.category = category
        self.policy = policy
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self.last_sweep_at = clock()

    def lookup(self, key: str) -> Optional[CachedResponse]:
        """
        Return a live entry's value and count a hit, or None and count a miss.

        An expired entry found here is removed.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                del self._entries[key]
                logger.debug(f"EXPIRED on read [{self.category.value}]: {key}")
                entry = None

            if entry is None:
                self._misses += 1
                return None

            self._hits += 1
            return entry.value

    def peek(self, key: str) -> Optional[CachedResponse]:
        """Like lookup, without touching hit/miss counters or removing anything."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(self._clock()):
                return None
            return entry.value

    def count_miss(self) -> None:
        with self._lock:
            self._misses += 1

    def put(self, key: str, value: CachedResponse) -> None:
        """Insert or overwrite an entry, evicting the oldest write when full."""
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.policy.max_entries:
                oldest_key, _ = self._entries.popitem(last=False)
                logger.info(f"EVICTED (capacity) [{self.category.value}]: {oldest_key}")

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                category=self.category,
                stored_at=self._clock(),
                ttl_seconds=self.policy.ttl_seconds,
            )

    def remove_matching(self, key_substring: Optional[str] = None) -> int:
        """
        Remove entries whose key contains the substring (all entries if None).

        Returns:
            Number of entries removed
        """
        with self._lock:
            if key_substring is None:
                count = len(self._entries)
                self._entries.clear()
                return count

            to_delete = [k for k in self._entries if key_substring in k]
            for key in to_delete:
                del self._entries[key]
            return len(to_delete)

    def sweep(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self.last_sweep_at = now
            if expired:
                logger.debug(f"Swept {len(expired)} expired entries from {self.category.value}")
            return len(expired)

    def sweep_due(self) -> bool:
        """True when a full check period has passed since the last sweep."""
        with self._lock:
            return self._clock() - self.last_sweep_at >= self.policy.check_period_seconds

    def get_stats(self, sample_size: int = 10) -> dict:
        with self._lock:
            return {
                "entry_count": len(self._entries),
                "sample_keys": list(self._entries.keys())[:sample_size],
                "hit_count": self._hits,
                "miss_count": self._misses,
                "ttl_seconds": self.policy.ttl_seconds,
                "max_entries": self.policy.max_entries,
            }
