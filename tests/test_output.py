import csv
import io
import json
from datetime import datetime, timezone

import pytest

from claudecat.report.grouping import AnalysisResult
from claudecat.report.output import (
    TableFormatter,
    display_width,
    format_cost,
    format_models,
    format_with_commas,
    render_csv,
    render_json,
    render_results,
    render_summary,
    render_table,
)


def _result(key, model, inp, out, cost, day=1, count=1, session="s1"):
    return AnalysisResult(
        timestamp=datetime(2025, 1, day, 12, 0, 0, tzinfo=timezone.utc),
        model=model,
        session_id=session,
        group_key=key,
        input_tokens=inp,
        output_tokens=out,
        total_tokens=inp + out,
        cost_usd=cost,
        count=count,
    )


def _sample():
    return [
        _result("2025-01-02", "claude-sonnet-4", 1500, 500, 2.5, day=2, count=3),
        _result("2025-01-01", "claude-opus-4, claude-sonnet-4", 2000, 1000, 7.25, day=1, count=2),
    ]


def test_display_width_counts_tab_as_eight():
    assert display_width("\t") == 8
    assert display_width("└─ x") == len("└─ x")


def test_format_with_commas_values():
    assert format_with_commas(1234567) == "1,234,567"
    assert format_with_commas(999) == "999"
    for n in (0, 12, 1000, 98765432):
        text = format_with_commas(n)
        assert text.replace(",", "") == str(n)
        assert all(len(part) == 3 for part in text.split(",")[1:])


def test_format_cost_and_models():
    assert format_cost(10.5) == "$10.50"
    assert format_models([]) == ""
    assert format_models(["a"]) == "a"
    assert format_models(["a", "b"]) == "a, b"


def test_table_formatter_borders_and_alignment():
    table = TableFormatter(["Name", "Cost"])
    table.add_row(["a", "$1.00"])
    table.add_row(["bb"])
    lines = table.render().split("\n")
    assert lines[0].startswith("┌") and lines[0].endswith("┐")
    assert lines[-1].startswith("└") and lines[-1].endswith("┘")
    assert len({len(line) for line in lines}) == 1
    assert lines[3].startswith("│ a ")
    assert lines[3].endswith(" $1.00 │")
    assert lines[4].count("│") == 3


def test_table_formatter_separator_and_truncation():
    table = TableFormatter(["A", "B"])
    table.add_row(["x", "y", "extra"])
    table.add_separator_line()
    lines = table.render().split("\n")
    assert "extra" not in table.render()
    assert sum(1 for line in lines if line.startswith("├")) == 2


def test_table_formatter_without_headers_is_empty():
    assert TableFormatter([]).render() == ""


def test_render_table_empty():
    assert render_table([], "day") == "No data to display.\n"


def test_render_table_time_grouping_sorted_with_total():
    text = render_table(_sample(), "day")
    assert "Models" in text
    assert text.index("2025-01-01") < text.index("2025-01-02")
    total_line = next(line for line in text.split("\n") if "TOTAL" in line)
    assert "claude-opus-4, claude-sonnet-4" in total_line
    assert format_with_commas(1500 + 2000) in total_line
    assert format_cost(2.5 + 7.25) in total_line


def test_render_table_model_grouping_has_no_models_column():
    results = [_result("claude-opus-4", "", 100, 50, 1.0), _result("claude-haiku", "", 10, 5, 0.1)]
    text = render_table(results, "model")
    header = text.split("\n")[1]
    assert "Model" in header and "Models" not in header
    assert "TOTAL" in text


def test_render_table_breakdown_lists_models_in_preference_order():
    results = [
        _result("2025-01-01", "claude-sonnet-4", 100, 50, 1.0),
        _result("2025-01-01", "claude-opus-4", 200, 50, 3.0),
        _result("2025-01-01", "TOTAL", 300, 100, 4.0),
        _result("2025-01-02", "claude-haiku", 10, 5, 0.1, day=2),
    ]
    text = render_table(results, "day", breakdown=True)
    assert text.index("└─ claude-opus-4") < text.index("└─ claude-sonnet-4")
    assert "└─ TOTAL" not in text
    total_line = next(line for line in text.split("\n") if line.startswith("│ TOTAL"))
    assert format_cost(1.0 + 3.0 + 0.1) in total_line


def test_render_csv_grouped():
    rows = list(csv.reader(io.StringIO(render_csv(_sample(), "day"))))
    assert rows[0] == ["Group", "Model", "Entries", "Input Tokens", "Output Tokens",
                       "Cache Creation", "Cache Read", "Total Tokens", "Cost USD"]
    assert rows[1][0] == "2025-01-02"
    assert rows[1][2] == "3"
    assert rows[1][3] == "1500"
    assert float(rows[1][-1]) == pytest.approx(2.5)
    assert len(rows) == 3


def test_render_csv_ungrouped():
    rows = list(csv.reader(io.StringIO(render_csv(_sample(), ""))))
    assert rows[0][0] == "Timestamp"
    assert rows[1][0] == "2025-01-02 12:00:00"
    assert rows[1][2] == "s1"


def test_render_json_round_trip():
    data = json.loads(render_json(_sample()))
    assert [item["group_key"] for item in data] == ["2025-01-02", "2025-01-01"]
    assert data[1]["cost_usd"] == pytest.approx(7.25)
    assert data[0]["count"] == 3


def test_render_summary():
    text = render_summary(_sample(), "day", breakdown=True)
    assert text.startswith("Analysis Summary\n")
    assert f"Total Entries: {3 + 2}" in text
    assert f"  Input Tokens: {1500 + 2000}" in text
    assert "Per-Model Cost Breakdown:" in text
    opus_block = text.index("claude-opus-4, claude-sonnet-4:")
    assert opus_block < text.index("\nclaude-sonnet-4:")


def test_render_summary_empty():
    assert render_summary([], "day") == "No data found.\n"


def test_render_results_dispatch_and_error():
    results = _sample()
    assert render_results(results, "table", "day") == render_table(results, "day")
    assert render_results(results, "json") == render_json(results)
    with pytest.raises(ValueError, match="unsupported output format"):
        render_results(results, "xml")