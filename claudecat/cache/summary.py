"""Summaries of parsed usage files, as stored by the summary cache."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_FRACTION = re.compile(r"\.(\d+)")


def _format_time(value: datetime) -> str:
    return value.isoformat()


def _parse_time(value: Any) -> datetime:
    if value is None or value == "":
        return ZERO_TIME
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


@dataclass
class ModelStat:
    """Usage statistics for one model."""

    model: str = ""
    entry_count: int = 0
    total_cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "entry_count": self.entry_count,
            "total_cost": self.total_cost,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_creation_tokens": self.cache_creation_tokens,
            "cache_read_tokens": self.cache_read_tokens,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ModelStat":
        return cls(
            model=str(data.get("model") or ""),
            entry_count=int(data.get("entry_count") or 0),
            total_cost=float(data.get("total_cost") or 0.0),
            input_tokens=int(data.get("input_tokens") or 0),
            output_tokens=int(data.get("output_tokens") or 0),
            cache_creation_tokens=int(data.get("cache_creation_tokens") or 0),
            cache_read_tokens=int(data.get("cache_read_tokens") or 0),
        )


def _stats_from(data: Optional[Mapping[str, Any]]) -> dict[str, ModelStat]:
    return {name: ModelStat.from_dict(stat) for name, stat in (data or {}).items()}


@dataclass
class TemporalBucket:
    """Usage aggregated over one hour ("YYYY-MM-DD HH") or day ("YYYY-MM-DD")."""

    period: str = ""
    entry_count: int = 0
    total_cost: float = 0.0
    total_tokens: int = 0
    model_stats: dict[str, ModelStat] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "entry_count": self.entry_count,
            "total_cost": self.total_cost,
            "total_tokens": self.total_tokens,
            "model_stats": {name: stat.to_dict() for name, stat in self.model_stats.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TemporalBucket":
        return cls(
            period=str(data.get("period") or ""),
            entry_count=int(data.get("entry_count") or 0),
            total_cost=float(data.get("total_cost") or 0.0),
            total_tokens=int(data.get("total_tokens") or 0),
            model_stats=_stats_from(data.get("model_stats")),
        )


def _buckets_from(data: Optional[Mapping[str, Any]]) -> dict[str, TemporalBucket]:
    return {key: TemporalBucket.from_dict(bucket) for key, bucket in (data or {}).items()}


@dataclass
class FileSummary:
    """A cached summary of one parsed usage file."""

    path: str = ""
    absolute_path: str = ""
    mod_time: datetime = ZERO_TIME
    file_size: int = 0
    entry_count: int = 0
    total_cost: float = 0.0
    total_tokens: int = 0
    model_stats: dict[str, ModelStat] = field(default_factory=dict)
    hourly_buckets: dict[str, TemporalBucket] = field(default_factory=dict)
    daily_buckets: dict[str, TemporalBucket] = field(default_factory=dict)
    processed_at: datetime = ZERO_TIME
    checksum: str = ""
    has_no_assistant_messages: bool = False

    def is_expired(self, current_mod_time: datetime, current_size: int) -> bool:
        """True if the file's modification time or size no longer match."""
        return self.mod_time != current_mod_time or self.file_size != current_size

    def to_dict(self) -> dict[str, Any]:
        """A JSON-ready mapping of the summary."""
        return {
            "path": self.path,
            "absolute_path": self.absolute_path,
            "mod_time": _format_time(self.mod_time),
            "file_size": self.file_size,
            "entry_count": self.entry_count,
            "total_cost": self.total_cost,
            "total_tokens": self.total_tokens,
            "model_stats": {name: stat.to_dict() for name, stat in self.model_stats.items()},
            "hourly_buckets": {k: b.to_dict() for k, b in self.hourly_buckets.items()},
            "daily_buckets": {k: b.to_dict() for k, b in self.daily_buckets.items()},
            "processed_at": _format_time(self.processed_at),
            "checksum": self.checksum,
            "has_no_assistant_messages": self.has_no_assistant_messages,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FileSummary":
        """Build a summary from a mapping; raise ValueError or TypeError if malformed."""
        if not isinstance(data, Mapping):
            raise TypeError("file summary must be a JSON object")
        return cls(
            path=str(data.get("path") or ""),
            absolute_path=str(data.get("absolute_path") or ""),
            mod_time=_parse_time(data.get("mod_time")),
            file_size=int(data.get("file_size") or 0),
            entry_count=int(data.get("entry_count") or 0),
            total_cost=float(data.get("total_cost") or 0.0),
            total_tokens=int(data.get("total_tokens") or 0),
            model_stats=_stats_from(data.get("model_stats")),
            hourly_buckets=_buckets_from(data.get("hourly_buckets")),
            daily_buckets=_buckets_from(data.get("daily_buckets")),
            processed_at=_parse_time(data.get("processed_at")),
            checksum=str(data.get("checksum") or ""),
            has_no_assistant_messages=bool(data.get("has_no_assistant_messages", False)),
        )