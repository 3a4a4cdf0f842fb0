"""Cache statistics and entry metadata shared by the cache implementations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

EvictionCallback = Callable[[str, Any], None]


@dataclass
class CacheStats:
    """Counters describing how a cache has performed."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0
    hit_rate: float = 0.0

    def update_hit_rate(self) -> None:
        """Recompute ``hit_rate`` from the hit and miss counters."""
        total = self.hits + self.misses
        self.hit_rate = self.hits / total if total > 0 else 0.0


@dataclass
class Entry:
    """A cache entry together with its bookkeeping data."""

    key: str
    value: Any
    size: int = 0
    access_time: datetime = field(default_factory=datetime.now)
    create_time: datetime = field(default_factory=datetime.now)