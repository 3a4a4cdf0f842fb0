"""Filtering, grouping, sorting and limiting of usage analysis results."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional, Sequence, Union

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("table", "json", "csv", "summary")
SORT_FIELDS = ("timestamp", "cost", "tokens", "model", "input_tokens", "output_tokens")
TIME_GROUPINGS = ("hour", "day", "week", "month")
TOTAL_MODEL = "TOTAL"

_PLAIN_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d %H:%M",
)
_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|z|[+-]\d{2}:\d{2})$"
)


@dataclass
class AnalysisResult:
    """One usage record, or an aggregate of several, as produced by analysis."""

    timestamp: datetime = datetime(1, 1, 1, tzinfo=timezone.utc)
    model: str = ""
    session_id: str = ""
    project: str = ""
    group_key: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0
    count: int = 0

    def add_usage(self, other: "AnalysisResult") -> None:
        """Add the token counts and cost of ``other`` to this result."""
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_creation_tokens += other.cache_creation_tokens
        self.cache_read_tokens += other.cache_read_tokens
        self.total_tokens += other.total_tokens
        self.cost_usd += other.cost_usd

    def to_dict(self) -> dict[str, Any]:
        """A JSON-ready mapping of the result."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "model": self.model,
            "session_id": self.session_id,
            "project": self.project,
            "group_key": self.group_key,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_creation_tokens": self.cache_creation_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "total_tokens": self.total_tokens,
            "cost_usd": self.cost_usd,
            "count": self.count,
        }


def parse_time_string(text: str) -> datetime:
    """Parse a date or date-time; times without a zone are UTC.

    Raises ValueError if no accepted layout matches.
    """
    for layout in _PLAIN_FORMATS:
        try:
            return datetime.strptime(text, layout).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    match = _RFC3339.match(text)
    if match:
        year, month, day, hour, minute, second, fraction, zone = match.groups()
        micro = int((fraction or "0")[:6].ljust(6, "0"))
        if zone in ("Z", "z"):
            tz = timezone.utc
        else:
            sign = -1 if zone[0] == "-" else 1
            offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
            tz = timezone(sign * offset)
        try:
            return datetime(
                int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
            )
        except ValueError:
            pass

    raise ValueError(f"unable to parse time: {text}")


def _choose(value: str, options: Sequence[str], what: str) -> str:
    for option in options:
        if value.lower() == option:
            return option
    raise ValueError(f"invalid {what}: {value} (valid options: {', '.join(options)})")


def validate_output_format(value: str) -> str:
    """The lower-cased output format; raise ValueError if it is not known."""
    return _choose(value, OUTPUT_FORMATS, "output format")


def validate_sort_field(value: str) -> str:
    """The lower-cased sort field (empty stays empty); raise ValueError if unknown."""
    if not value:
        return ""
    return _choose(value, SORT_FIELDS, "sort field")


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _bound(value: Union[str, datetime, None], name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    try:
        return parse_time_string(value)
    except ValueError as err:
        logger.warning("invalid %s date %s: %s", name, value, err)
        raise


def filter_results(
    results: Sequence[AnalysisResult],
    start: Union[str, datetime, None] = None,
    end: Union[str, datetime, None] = None,
) -> list[AnalysisResult]:
    """Results whose timestamps lie within ``start``..``end`` inclusive.

    A bound that cannot be parsed is reported as a warning and the results
    are returned unfiltered.
    """
    try:
        lower = _bound(start, "from")
        upper = _bound(end, "to")
    except ValueError:
        return list(results)
    if lower is None and upper is None:
        return list(results)

    kept = []
    for result in results:
        moment = _as_utc(result.timestamp)
        if lower is not None and moment < lower:
            continue
        if upper is not None and moment > upper:
            continue
        kept.append(result)
    return kept


def _time_key(moment: datetime, group_by: str) -> str:
    if group_by == "hour":
        return moment.strftime("%Y-%m-%d %H:00")
    if group_by == "day":
        return moment.strftime("%Y-%m-%d")
    if group_by == "week":
        year, week, _ = moment.isocalendar()
        return f"{year}-W{week:02d}"
    if group_by == "month":
        return moment.strftime("%Y-%m")
    return ""


def _group_key(result: AnalysisResult, group_by: str) -> str:
    if group_by == "model":
        return result.model
    if group_by == "project":
        return result.project or "unknown"
    if group_by == "session":
        return result.session_id
    if group_by in TIME_GROUPINGS:
        return _time_key(result.timestamp, group_by)
    return "all"


def model_priority(model: str) -> int:
    """Display priority of a model: opus 1, sonnet 2, haiku 3, others 4."""
    lowered = model.lower()
    if "opus" in lowered:
        return 1
    if "sonnet" in lowered:
        return 2
    if "haiku" in lowered:
        return 3
    return 4


def sort_models_by_preference(models: Iterable[str]) -> list[str]:
    """Models ordered opus first, then sonnet, haiku and the rest, by name within each."""
    return sorted(models, key=lambda m: (model_priority(m), m))


def group_results(
    results: Sequence[AnalysisResult], group_by: str = "day", breakdown: bool = False
) -> list[AnalysisResult]:
    """Aggregate results by ``group_by`` (model, project, session, hour, day, week, month).

    An empty grouping means "day"; any other unknown value puts everything in
    one group keyed "all". With ``breakdown`` and a time grouping, each period
    is split per model as in :func:`breakdown_results`.
    """
    group_by = group_by or "day"
    if breakdown and group_by in TIME_GROUPINGS:
        return breakdown_results(results, group_by)

    groups: dict[str, list[AnalysisResult]] = {}
    for result in results:
        groups.setdefault(_group_key(result, group_by), []).append(result)

    aggregated = []
    for key, members in groups.items():
        first = members[0]
        agg = AnalysisResult(
            group_key=key,
            model="",
            timestamp=first.timestamp,
            session_id=first.session_id,
            project=first.project,
        )
        models = set()
        for member in members:
            agg.add_usage(member)
            if member.model:
                models.add(member.model)
        if group_by in TIME_GROUPINGS:
            agg.model = ", ".join(sort_models_by_preference(models))
        agg.count = len(members)
        aggregated.append(agg)
    return aggregated


def breakdown_results(results: Sequence[AnalysisResult], group_by: str) -> list[AnalysisResult]:
    """Per-period, per-model aggregates, each period followed by a TOTAL row.

    Periods come in key order and models in preference order.
    """
    periods: dict[str, tuple[dict[str, AnalysisResult], AnalysisResult]] = {}
    for result in results:
        key = _time_key(result.timestamp, group_by)
        if key not in periods:
            total = AnalysisResult(group_key=key, model=TOTAL_MODEL, timestamp=result.timestamp)
            periods[key] = ({}, total)
        per_model, total = periods[key]
        row = per_model.get(result.model)
        if row is None:
            row = AnalysisResult(group_key=key, model=result.model, timestamp=result.timestamp)
            per_model[result.model] = row
        row.add_usage(result)
        row.count += 1
        total.add_usage(result)
        total.count += 1

    flattened = []
    for key in sorted(periods):
        per_model, total = periods[key]
        flattened.extend(per_model[name] for name in sort_models_by_preference(per_model))
        flattened.append(total)
    return flattened


_SORT_KEYS = {
    "timestamp": (lambda r: _as_utc(r.timestamp), False),
    "cost": (lambda r: r.cost_usd, True),
    "tokens": (lambda r: r.total_tokens, True),
    "input_tokens": (lambda r: r.input_tokens, True),
    "output_tokens": (lambda r: r.output_tokens, True),
    "model": (lambda r: r.model, False),
}


def sort_results(results: Sequence[AnalysisResult], sort_by: str) -> list[AnalysisResult]:
    """Results ordered by ``sort_by``: timestamps and models ascending, amounts descending.

    An empty or unknown field leaves the order unchanged.
    """
    spec = _SORT_KEYS.get(sort_by)
    if spec is None:
        return list(results)
    key, descending = spec
    return sorted(results, key=key, reverse=descending)


def limit_results(results: Sequence[AnalysisResult], limit: int) -> list[AnalysisResult]:
    """The first ``limit`` results; a non-positive limit keeps them all."""
    if limit <= 0 or limit >= len(results):
        return list(results)
    return list(results[:limit])