"""Burn rates and usage projections for session blocks.

Blocks are any objects with ``start_time``, ``end_time``, ``actual_end_time``,
``is_active``, ``is_gap``, ``cost_usd``, ``token_counts`` (whose
``total_tokens`` is a value or a method) and ``duration_minutes`` (a value
or a method). :meth:`BurnRateCalculator.process_burn_rates` also sets
``burn_rate``, ``burn_rate_snapshot`` and ``projection_data`` on them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional, Sequence

_HISTORY_POINTS = 20


@dataclass
class BurnRate:
    """Rate at which tokens and money are being consumed."""

    tokens_per_minute: float = 0.0
    cost_per_hour: float = 0.0


@dataclass
class UsageProjection:
    """Usage expected by the end of a block if the current rate holds."""

    projected_total_tokens: int = 0
    projected_total_cost: float = 0.0
    remaining_minutes: float = 0.0


def _resolve(value: Any) -> Any:
    return value() if callable(value) else value


def _total_tokens(block: Any) -> int:
    counts = getattr(block, "token_counts", None)
    if counts is None:
        return 0
    return _resolve(getattr(counts, "total_tokens", 0)) or 0


def _duration_minutes(block: Any) -> float:
    return float(_resolve(getattr(block, "duration_minutes", 0.0)) or 0.0)


def _now_like(reference: datetime) -> datetime:
    now = datetime.now(timezone.utc)
    return now if reference.tzinfo is not None else now.replace(tzinfo=None)


class BurnRateCalculator:
    """Computes burn rates, projections and rate history for session blocks."""

    def calculate_burn_rate(self, block: Any) -> Optional[BurnRate]:
        """Current rate of an active block, or ``None`` if it has none yet."""
        duration = _duration_minutes(block)
        if not block.is_active or duration < 1:
            return None
        tokens = _total_tokens(block)
        if tokens == 0:
            return None
        return BurnRate(
            tokens_per_minute=tokens / duration,
            cost_per_hour=(block.cost_usd / duration) * 60,
        )

    def project_block_usage(self, block: Any) -> Optional[UsageProjection]:
        """Projected totals at the block's end, or ``None`` if not projectable."""
        rate = self.calculate_burn_rate(block)
        if rate is None:
            return None
        remaining = block.end_time - _now_like(block.end_time)
        if remaining <= timedelta(0):
            return None
        remaining_minutes = remaining.total_seconds() / 60
        remaining_hours = remaining_minutes / 60
        projected_tokens = _total_tokens(block) + rate.tokens_per_minute * remaining_minutes
        projected_cost = block.cost_usd + rate.cost_per_hour * remaining_hours
        return UsageProjection(
            projected_total_tokens=int(projected_tokens),
            projected_total_cost=projected_cost,
            remaining_minutes=remaining_minutes,
        )

    def calculate_hourly_burn_rate(self, blocks: Sequence[Any], current_time: datetime) -> float:
        """Tokens per minute over the hour before ``current_time``, across all blocks."""
        if not blocks:
            return 0.0
        hour_ago = current_time - timedelta(hours=1)
        total = sum(self._tokens_in_hour(block, hour_ago, current_time) for block in blocks)
        return total / 60.0 if total > 0 else 0.0

    def _tokens_in_hour(self, block: Any, hour_ago: datetime, current_time: datetime) -> float:
        if block.is_gap:
            return 0.0
        start = block.start_time
        end = self._session_end(block, current_time)
        if end < hour_ago:
            return 0.0
        start_in_hour = max(start, hour_ago)
        end_in_hour = min(end, current_time)
        if end_in_hour <= start_in_hour:
            return 0.0
        total_minutes = (end - start).total_seconds() / 60
        if total_minutes <= 0:
            return 0.0
        hour_minutes = (end_in_hour - start_in_hour).total_seconds() / 60
        return _total_tokens(block) * (hour_minutes / total_minutes)

    @staticmethod
    def _session_end(block: Any, current_time: datetime) -> datetime:
        if block.is_active:
            return current_time
        actual_end = getattr(block, "actual_end_time", None)
        return actual_end if actual_end is not None else current_time

    def process_burn_rates(self, blocks: Iterable[Any]) -> None:
        """Attach burn rates and projections to every active block."""
        for block in blocks:
            if not block.is_active:
                continue
            rate = self.calculate_burn_rate(block)
            if rate is None:
                continue
            block.burn_rate = rate
            block.burn_rate_snapshot = rate
            projection = self.project_block_usage(block)
            if projection is not None:
                block.projection_data = projection

    def calculate_global_burn_rate(self, blocks: Iterable[Any]) -> BurnRate:
        """Sum of the burn rates of all active blocks."""
        rates = [
            rate
            for rate in (self.calculate_burn_rate(b) for b in blocks if b.is_active)
            if rate is not None
        ]
        return BurnRate(
            tokens_per_minute=sum(r.tokens_per_minute for r in rates),
            cost_per_hour=sum(r.cost_per_hour for r in rates),
        )

    def burn_rate_history(self, blocks: Sequence[Any], duration: timedelta) -> list[BurnRate]:
        """Hourly burn rates sampled at 20 points across the last ``duration``."""
        now = datetime.now(timezone.utc)
        interval = max(duration / _HISTORY_POINTS, timedelta(minutes=1))
        history = []
        for i in range(_HISTORY_POINTS):
            sample_time = now - duration + i * interval
            rate = self.calculate_hourly_burn_rate(blocks, sample_time)
            history.append(BurnRate(tokens_per_minute=rate, cost_per_hour=rate * 60))
        return history