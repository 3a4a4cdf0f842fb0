"""A size-bounded least-recently-used cache."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Optional

from claudecat.cache.stats import CacheStats, EvictionCallback

logger = logging.getLogger(__name__)


@dataclass
class _Item:
    key: str
    value: Any
    size: int
    access_time: datetime
    create_time: datetime
    persistent: bool = False


def _estimate_size(value: Any) -> int:
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return len(value)
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 8
    return 64


class LRUCache:
    """LRU cache whose capacity is measured in bytes.

    Lookups of items that were not stored as persistent count as expired:
    the item is dropped and the lookup is a miss.
    """

    def __init__(self, capacity: int, on_evicted: Optional[EvictionCallback] = None) -> None:
        self._capacity = capacity
        self._size = 0
        self._items: "OrderedDict[str, _Item]" = OrderedDict()
        self._stats = CacheStats(max_size=capacity)
        self._lock = threading.RLock()
        self.on_evicted = on_evicted

    def get(self, key: str) -> Any:
        """Return the value for ``key``, or ``None`` on a miss."""
        with self._lock:
            item = self._items.get(key)
            if item is None or not item.persistent:
                if item is not None:
                    self._remove(item)
                self._stats.misses += 1
                self._stats.update_hit_rate()
                return None
            self._items.move_to_end(key)
            item.access_time = datetime.now()
            self._stats.hits += 1
            self._stats.update_hit_rate()
            return item.value

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` with an estimated size."""
        self.set_with_size(key, value, _estimate_size(value))

    def set_with_size(self, key: str, value: Any, size: int) -> None:
        """Store ``value`` with an explicit size."""
        self.set_with_options(key, value, size, False)

    def set_with_options(self, key: str, value: Any, size: int, persistent: bool) -> None:
        """Store ``value``; raise ValueError if it cannot fit at all."""
        with self._lock:
            now = datetime.now()
            item = self._items.get(key)
            if item is not None:
                self._size += size - item.size
                item.value = value
                item.size = size
                item.access_time = now
                item.persistent = persistent
                self._items.move_to_end(key)
                return

            if size > self._capacity:
                raise ValueError(f"item size {size} exceeds cache capacity {self._capacity}")

            while self._size + size > self._capacity and self._items:
                self._evict_oldest()

            self._items[key] = _Item(key, value, size, now, now, persistent)
            self._size += size
            self._stats.size = len(self._items)

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        with self._lock:
            item = self._items.get(key)
            if item is not None:
                self._remove(item)

    def clear(self) -> None:
        """Remove every item, reporting each to the eviction callback."""
        with self._lock:
            if self.on_evicted is not None:
                for key, item in self._items.items():
                    self.on_evicted(key, item.value)
            self._items = OrderedDict()
            self._size = 0
            self._stats.size = 0

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def stats(self) -> CacheStats:
        """A snapshot of the cache statistics."""
        with self._lock:
            return replace(self._stats, size=len(self._items))

    def resize(self, new_capacity: int) -> None:
        """Change the capacity, evicting old items until the cache fits."""
        with self._lock:
            self._capacity = new_capacity
            self._stats.max_size = new_capacity
            while self._size > self._capacity and self._items:
                self._evict_oldest()

    def _remove(self, item: _Item) -> None:
        logger.debug(
            "Evicting cache item: key=%s, size=%d, age=%s, persistent=%s",
            item.key,
            item.size,
            datetime.now() - item.create_time,
            item.persistent,
        )
        del self._items[item.key]
        self._size -= item.size
        self._stats.size = len(self._items)
        if self.on_evicted is not None:
            self.on_evicted(item.key, item.value)

    def _evict_oldest(self) -> None:
        oldest = next(iter(self._items.values()))
        self._remove(oldest)
        self._stats.evictions += 1