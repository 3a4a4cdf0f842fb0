"""Rendering of analysis results as tables, CSV, JSON and plain-text summaries."""

from __future__ import annotations

import csv
import io
import json
import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from claudecat.report.grouping import (
    TIME_GROUPINGS,
    TOTAL_MODEL,
    AnalysisResult,
    sort_models_by_preference,
)

_SEPARATOR = "SEPARATOR"
_NUMERIC_MARKERS = ("input", "output", "cache", "tokens", "cost")
_TIMESTAMP_LAYOUT = "%Y-%m-%d %H:%M:%S"
_USAGE_HEADERS = ["Input", "Output", "Cache Create", "Cache Read", "Total Tokens", "Cost (USD)"]


def display_width(text: str) -> int:
    """Display width of ``text``: one column per character, eight for a tab."""
    return sum(8 if char == "\t" else 1 for char in text)


def _pad(text: str, width: int, right_align: bool) -> str:
    padding = width - display_width(text)
    if padding <= 0:
        return text
    return " " * padding + text if right_align else text + " " * padding


class TableFormatter:
    """A table drawn with box characters; numeric columns are right-aligned.

    Columns count as numeric when their header mentions input, output,
    cache, tokens or cost.
    """

    def __init__(self, headers: Sequence[str]) -> None:
        self.headers = list(headers)
        self.rows: list[list[str]] = []

    def add_row(self, row: Sequence[str]) -> None:
        """Append a row, padded with empty cells or cut to the header count."""
        cells = list(row)[: len(self.headers)]
        cells.extend([""] * (len(self.headers) - len(cells)))
        self.rows.append(cells)

    def add_separator_line(self) -> None:
        """Append a horizontal rule."""
        self.rows.append([_SEPARATOR] * len(self.headers))

    def _widths(self) -> list[int]:
        widths = [display_width(header) for header in self.headers]
        for row in self.rows:
            widths = [max(width, display_width(cell)) for width, cell in zip(widths, row)]
        return widths

    def _is_numeric(self, header: str) -> bool:
        lowered = header.lower()
        return any(marker in lowered for marker in _NUMERIC_MARKERS)

    def render(self) -> str:
        """The table as text, without a trailing newline."""
        if not self.headers:
            return ""
        widths = self._widths()
        numeric = [self._is_numeric(header) for header in self.headers]

        def border(left: str, middle: str, right: str) -> str:
            return left + middle.join("─" * (width + 2) for width in widths) + right

        def line(row: Sequence[str]) -> str:
            return "│" + "".join(
                f" {_pad(cell, width, align)} │" for cell, width, align in zip(row, widths, numeric)
            )

        lines = [border("┌", "┬", "┐"), line(self.headers), border("├", "┼", "┤")]
        for row in self.rows:
            if row and row[0] == _SEPARATOR:
                lines.append(border("├", "┼", "┤"))
            else:
                lines.append(line(row))
        lines.append(border("└", "┴", "┘"))
        return "\n".join(lines)


def format_with_commas(n: int) -> str:
    """``n`` in decimal with commas between groups of three digits."""
    text = str(n)
    if len(text) <= 3:
        return text
    pieces = []
    for index, digit in enumerate(text):
        if index > 0 and (len(text) - index) % 3 == 0:
            pieces.append(",")
        pieces.append(digit)
    return "".join(pieces)


def format_cost(cost: float) -> str:
    """A cost in dollars with two decimals."""
    return f"${cost:.2f}"


def format_models(models: Sequence[str]) -> str:
    """Model names joined by commas."""
    return ", ".join(models)


def _usage_cells(usage: AnalysisResult) -> list[str]:
    return [
        format_with_commas(usage.input_tokens),
        format_with_commas(usage.output_tokens),
        format_with_commas(usage.cache_creation_tokens),
        format_with_commas(usage.cache_read_tokens),
        format_with_commas(usage.total_tokens),
        format_cost(usage.cost_usd),
    ]


def _sum_usage(results: Iterable[AnalysisResult]) -> AnalysisResult:
    total = AnalysisResult()
    for result in results:
        total.add_usage(result)
    return total


def _group_header(group_by: str) -> str:
    if group_by == "project":
        return "Project"
    if group_by == "model":
        return "Model"
    if group_by == "session":
        return "Session"
    if group_by in TIME_GROUPINGS:
        return "Date"
    return "Group"


def _table_without_breakdown(results: Sequence[AnalysisResult], group_by: str) -> str:
    header = _group_header(group_by)
    if group_by in ("model", "project"):
        headers = [header, *_USAGE_HEADERS]
    else:
        headers = [header, "Models", *_USAGE_HEADERS]
    table = TableFormatter(headers)
    ordered = sorted(results, key=lambda r: r.group_key)
    total = _sum_usage(ordered)

    if group_by not in ("model", "project", "session"):
        all_models: set[str] = set()
        for result in ordered:
            table.add_row([result.group_key, result.model, *_usage_cells(result)])
            if result.model:
                all_models.update(name.strip() for name in result.model.split(", "))
        table.add_separator_line()
        table.add_row(
            ["TOTAL", format_models(sort_models_by_preference(all_models)), *_usage_cells(total)]
        )
    else:
        for result in ordered:
            table.add_row([result.group_key, *_usage_cells(result)])
        table.add_separator_line()
        table.add_row(["TOTAL", *_usage_cells(total)])
    return table.render()


@dataclass
class _DateGroup:
    per_model: dict[str, AnalysisResult] = field(default_factory=dict)
    total: AnalysisResult = field(default_factory=AnalysisResult)


def _table_with_breakdown(results: Sequence[AnalysisResult], group_by: str) -> str:
    groups: dict[str, _DateGroup] = {}
    for result in results:
        date_key = result.group_key if group_by == "day" else result.timestamp.strftime("%Y-%m-%d")
        group = groups.setdefault(date_key, _DateGroup())
        if result.model == TOTAL_MODEL:
            continue
        group.per_model.setdefault(result.model, AnalysisResult()).add_usage(result)
        group.total.add_usage(result)

    headers = ["Date", "Models", *_USAGE_HEADERS]
    table = TableFormatter(headers)
    dates = sorted(groups)
    for position, date in enumerate(dates):
        group = groups[date]
        table.add_row([date, "", *_usage_cells(group.total)])
        for model in sort_models_by_preference(group.per_model):
            table.add_row(["", "└─ " + model, *_usage_cells(group.per_model[model])])
        if position < len(dates) - 1:
            table.add_row([""] * len(headers))

    grand_total = _sum_usage(group.total for group in groups.values())
    table.add_separator_line()
    table.add_row(["TOTAL", "", *_usage_cells(grand_total)])
    return table.render()


def render_table(
    results: Sequence[AnalysisResult], group_by: str = "day", breakdown: bool = False
) -> str:
    """Grouped results as a bordered table followed by a TOTAL row."""
    if not results:
        return "No data to display.\n"
    if breakdown:
        return _table_with_breakdown(results, group_by)
    return _table_without_breakdown(results, group_by)


def render_csv(results: Sequence[AnalysisResult], group_by: str = "day") -> str:
    """Results as CSV; grouped results list entry counts, raw ones sessions."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    if group_by:
        writer.writerow(
            ["Group", "Model", "Entries", "Input Tokens", "Output Tokens",
             "Cache Creation", "Cache Read", "Total Tokens", "Cost USD"]
        )
    else:
        writer.writerow(
            ["Timestamp", "Model", "Session", "Input Tokens", "Output Tokens",
             "Cache Creation", "Cache Read", "Total Tokens", "Cost USD"]
        )
    for result in results:
        counts = [
            str(result.input_tokens),
            str(result.output_tokens),
            str(result.cache_creation_tokens),
            str(result.cache_read_tokens),
            str(result.total_tokens),
            f"{result.cost_usd:.4f}",
        ]
        if group_by:
            writer.writerow([result.group_key, result.model, str(result.count), *counts])
        else:
            writer.writerow(
                [result.timestamp.strftime(_TIMESTAMP_LAYOUT), result.model, result.session_id, *counts]
            )
    return buffer.getvalue()


def render_json(results: Sequence[AnalysisResult]) -> str:
    """Results as an indented JSON array."""
    return json.dumps([result.to_dict() for result in results], indent=2, ensure_ascii=False) + "\n"


def _percent(part: float, whole: float) -> str:
    if whole == 0:
        value = math.nan if part == 0 else math.copysign(math.inf, part)
    else:
        value = part / whole * 100
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return f"{value:.1f}"


def render_summary(
    results: Sequence[AnalysisResult], group_by: str = "day", breakdown: bool = False
) -> str:
    """A plain-text summary of totals, models used and, optionally, per-model costs."""
    if not results:
        return "No data found.\n"

    entries = sum(r.count for r in results) if group_by else len(results)
    total = _sum_usage(results)
    model_counts: dict[str, int] = {}
    model_stats: dict[str, AnalysisResult] = {}
    for result in results:
        model_counts[result.model] = model_counts.get(result.model, 0) + 1
        model_stats.setdefault(result.model, AnalysisResult(model=result.model)).add_usage(result)

    lines = [
        "Analysis Summary",
        "================",
        "",
        f"Total Entries: {entries}",
        "Date Range: {} to {}".format(
            results[0].timestamp.strftime(_TIMESTAMP_LAYOUT),
            results[-1].timestamp.strftime(_TIMESTAMP_LAYOUT),
        ),
        "",
        "Token Usage:",
        f"  Input Tokens: {total.input_tokens}",
        f"  Output Tokens: {total.output_tokens}",
        f"  Cache Creation: {total.cache_creation_tokens}",
        f"  Cache Read: {total.cache_read_tokens}",
        f"  Total Tokens: {total.total_tokens}",
        "",
        f"Cost: ${total.cost_usd:.4f}",
        "",
        "Models Used:",
    ]
    lines.extend(f"  {model}: {count} entries" for model, count in model_counts.items())

    if breakdown:
        lines.extend(["", "Per-Model Cost Breakdown:", "========================"])
        for stat in sorted(model_stats.values(), key=lambda s: s.cost_usd, reverse=True):
            lines.extend(
                [
                    "",
                    f"{stat.model}:",
                    f"  Input Tokens: {stat.input_tokens}",
                    f"  Output Tokens: {stat.output_tokens}",
                    f"  Cache Creation: {stat.cache_creation_tokens}",
                    f"  Cache Read: {stat.cache_read_tokens}",
                    f"  Total Tokens: {stat.total_tokens}",
                    f"  Cost: ${stat.cost_usd:.4f} ({_percent(stat.cost_usd, total.cost_usd)}%)",
                ]
            )
    return "\n".join(lines) + "\n"


def render_results(
    results: Sequence[AnalysisResult],
    output: str = "table",
    group_by: str = "day",
    breakdown: bool = False,
) -> str:
    """Render results in ``output`` format; raise ValueError for an unknown format."""
    if output == "table":
        return render_table(results, group_by, breakdown)
    if output == "json":
        return render_json(results)
    if output == "csv":
        return render_csv(results, group_by)
    if output == "summary":
        return render_summary(results, group_by, breakdown)
    raise ValueError(f"unsupported output format: {output}")