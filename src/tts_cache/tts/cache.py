"""
In-Memory LRU Cache with TTL Support.

Keeps recently read metadata records in process so that status polling
(players ask every few seconds while a generation runs) does not hit the
metadata store on every request. Features:
    - LRU eviction when capacity is reached
    - TTL based expiration
    - Thread-safe operations
    - Statistics tracking (hits, misses, expirations)

The cache is write-through: TTSService updates it together with the
metadata store, so within one process it never serves a stale record.
Across processes the TTL bounds staleness.

Example:
    >>> cache = RecordCache(max_items=1024, ttl_seconds=300)
    >>> cache.set("42", record)
    >>> item, timings = cache.get("42")
    >>> if item:
    ...     print(item.record.status)
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Optional

from tts_cache.core.config import Defaults
from tts_cache.core.logging import debug, get_logger, verbose
from tts_cache.tts.storage import TTSRecord
from tts_cache.utils.timeit import timeit

_LOG = get_logger("tts-cache.cache")


@dataclass
class CacheItem:
    """
    A cached metadata record.

    Attributes:
        record: The TTSRecord as last read or written.
        created_at: Unix timestamp when the item was cached.
    """
    record: TTSRecord
    created_at: float = field(default_factory=time.time)


class RecordCache:
    """
    Thread-safe LRU cache with TTL support, keyed by content id.

    Attributes:
        max_items: Maximum number of records to keep.
        ttl_seconds: Item lifetime in seconds (0 = no TTL).
    """

    def __init__(
        self,
        max_items: int = Defaults.CACHE_MAX_ITEMS,
        ttl_seconds: int = Defaults.CACHE_TTL_SECONDS,
    ):
        self.max_items = int(max_items)
        self.ttl_seconds = int(ttl_seconds)

        # OrderedDict maintains insertion order for LRU tracking
        self._d: "OrderedDict[str, CacheItem]" = OrderedDict()
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._expirations = 0

    def get(self, content_id: str) -> tuple[Optional[CacheItem], Dict[str, float]]:
        """
        Look up a record.

        Expired items are removed and counted as a miss.

        Returns:
            Tuple of (CacheItem or None, timing dict with 'cache_get').
        """
        timings: Dict[str, float] = {}

        with timeit("cache_get") as t:
            with self._lock:
                item = self._d.get(content_id)

                if item is not None:
                    age = time.time() - item.created_at
                    if self.ttl_seconds > 0 and age > self.ttl_seconds:
                        del self._d[content_id]
                        self._expirations += 1
                        self._misses += 1
                        item = None
                        verbose(_LOG, "expired", content_id=content_id, age=round(age, 1))
                    else:
                        self._d.move_to_end(content_id)
                        self._hits += 1
                else:
                    self._misses += 1

        timings["cache_get"] = t.seconds

        if item is not None:
            debug(_LOG, "hit", content_id=content_id, status=item.record.status)

        return item, timings

    def set(self, content_id: str, record: TTSRecord) -> Dict[str, float]:
        """
        Store a record, evicting the least recently used one if full.

        Returns:
            Timing dict with 'cache_set'.
        """
        timings: Dict[str, float] = {}

        with timeit("cache_set") as t:
            with self._lock:
                self._d[content_id] = CacheItem(record=record)
                self._d.move_to_end(content_id)

                while len(self._d) > self.max_items:
                    self._d.popitem(last=False)

        timings["cache_set"] = t.seconds
        debug(_LOG, "set", content_id=content_id, status=record.status)

        return timings

    def delete(self, content_id: str) -> bool:
        with self._lock:
            if content_id in self._d:
                del self._d[content_id]
                return True
            return False

    def clear(self) -> int:
        """
        Returns:
            Number of items that were cleared.
        """
        with self._lock:
            count = len(self._d)
            self._d.clear()
            return count

    def cleanup_expired(self) -> int:
        """Remove all expired items. Returns the number removed."""
        if self.ttl_seconds <= 0:
            return 0

        cutoff = time.time() - self.ttl_seconds
        with self._lock:
            expired = [k for k, item in self._d.items() if item.created_at < cutoff]
            for k in expired:
                del self._d[k]
            self._expirations += len(expired)

        if expired:
            verbose(_LOG, "cleanup", removed=len(expired))
        return len(expired)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._d),
                "max_items": self.max_items,
                "ttl_seconds": self.ttl_seconds,
                "expirations": self._expirations,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._d)

    def __contains__(self, content_id: str) -> bool:
        """Presence check without TTL evaluation."""
        with self._lock:
            return content_id in self._d
