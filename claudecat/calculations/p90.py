"""90th-percentile limits derived from historical session blocks.

Blocks are any objects with ``is_gap``, ``is_active``, ``total_tokens``,
``token_counts``, ``cost_usd`` and ``sent_messages_count`` attributes.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence, TypeVar

DEFAULT_COST_LIMIT = 100.0
DEFAULT_MESSAGES_LIMIT = 150

_T = TypeVar("_T", int, float)


@dataclass
class P90Config:
    """Settings for the P90 calculation."""

    # Pro: 1M, Max5: 2M, Max20: 8M
    common_limits: list[int] = field(default_factory=lambda: [1_000_000, 2_000_000, 8_000_000])
    limit_threshold: float = 0.95
    default_min_limit: int = 1_000_000
    cache_ttl_seconds: int = 3600


def _block_tokens(block: Any) -> int:
    tokens = getattr(block, "total_tokens", 0) or 0
    if tokens:
        return tokens
    counts = getattr(block, "token_counts", None)
    if counts is None:
        return 0
    total = getattr(counts, "total_tokens", 0)
    if callable(total):
        total = total()
    return total or 0


def _completed(blocks: Iterable[Any]) -> Iterable[Any]:
    return (b for b in blocks if not getattr(b, "is_gap", False) and not getattr(b, "is_active", False))


def _percentile_90(values: Sequence[_T]) -> _T:
    ordered = sorted(values)
    index = min(int(len(ordered) * 0.9), len(ordered) - 1)
    return ordered[index]


class P90Calculator:
    """Computes P90 token, cost and message limits from completed sessions."""

    def __init__(self, config: Optional[P90Config] = None) -> None:
        self.config = config if config is not None else P90Config()
        self._cached: Optional[tuple[int, float]] = None
        self._lock = threading.Lock()

    def calculate_p90_limit(self, blocks: Sequence[Any], use_cache: bool = True) -> int:
        """The P90 token limit, never below the configured minimum."""
        if not blocks:
            return self.config.default_min_limit

        if use_cache:
            with self._lock:
                if self._cached is not None and time.monotonic() < self._cached[1]:
                    return self._cached[0]

        value = self._p90_from_blocks(blocks)

        if use_cache:
            with self._lock:
                self._cached = (value, time.monotonic() + self.config.cache_ttl_seconds)
        return value

    def _p90_from_blocks(self, blocks: Sequence[Any]) -> int:
        totals = [_block_tokens(b) for b in _completed(blocks)]
        sessions = [t for t in totals if self._did_hit_limit(t)]
        if not sessions:
            sessions = [t for t in totals if t > 0]
        if not sessions:
            return self.config.default_min_limit
        return max(_percentile_90(sessions), self.config.default_min_limit)

    def _did_hit_limit(self, tokens: int) -> bool:
        return any(tokens >= limit * self.config.limit_threshold for limit in self.config.common_limits)

    def cost_p90(self, blocks: Sequence[Any]) -> float:
        """The P90 cost of completed sessions, or a default when there are none."""
        costs = [c for c in (getattr(b, "cost_usd", 0.0) or 0.0 for b in _completed(blocks)) if c > 0]
        if not costs:
            return DEFAULT_COST_LIMIT
        return _percentile_90(costs)

    def messages_p90(self, blocks: Sequence[Any]) -> int:
        """The P90 message count of completed sessions, or a default when there are none."""
        counts = [
            m for m in (getattr(b, "sent_messages_count", 0) or 0 for b in _completed(blocks)) if m > 0
        ]
        if not counts:
            return DEFAULT_MESSAGES_LIMIT
        return _percentile_90(counts)