# claudecat

Building blocks for looking at Claude Code token usage: what it cost, how
fast it is being spent, and how it breaks down over time and by model.

The package has three parts:

- `claudecat.cache`: an LRU cache with byte-size accounting
  (`claudecat.cache.lru.LRUCache`), a cache of file contents and their
  parsed entries validated against modification times
  (`claudecat.cache.file.FileCache`, `claudecat.cache.store.Store`), and an
  on-disk cache of per-file usage summaries
  (`claudecat.cache.summary_store.FileBasedSummaryCache`,
  `claudecat.cache.summary.FileSummary`).
- `claudecat.calculations`: cost calculation per model with currency
  conversion (`CostCalculator`), 90th-percentile session limits
  (`P90Calculator`), and burn rates and projections for session blocks
  (`BurnRateCalculator`).
- `claudecat.report`: filtering, grouping, sorting and limiting of usage
  results (`claudecat.report.grouping`) and rendering them as bordered
  tables, CSV, JSON or a plain-text summary (`claudecat.report.output`).

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Command line

Installing the package provides the `claudecat` command, which reports
version and platform information:

```
claudecat version
claudecat version --output json
claudecat version --output short
claudecat version --short
```

## Costs

Costs are computed from prices in USD per million tokens and rounded to
six decimal places, halves away from zero. The calculator has no built-in
price table: pass one, a `fallback` price for models missing from it, or a
`provider` object with a `get_pricing(model)` method. Without a price for a
model, `calculate` raises `KeyError`.

```python
from claudecat.calculations.cost import CostCalculator, ModelPricing, round_cost

sonnet = ModelPricing(input=3.0, output=15.0, cache_creation=3.75, cache_read=0.3)
calculator = CostCalculator(pricing={"claude-3-5-sonnet": sonnet})

calculator.get_cost_for_tokens("claude-3-5-sonnet", 1_000_000, 500_000, 0, 0)  # 10.5
round_cost(1.1234567)  # 1.123457
```

`calculate` and `calculate_batch` accept any objects with `model`,
`input_tokens`, `output_tokens`, `cache_creation_tokens`,
`cache_read_tokens` and `total_tokens` attributes. Currency conversion uses
`rates` (USD only by default) via `calculate_with_currency` and
`update_currency_rate`.

`P90Calculator` and `BurnRateCalculator` likewise work on any block objects
carrying the attributes listed in their module docstrings.

## Caches

An LRU cache that evicts the least recently used items once the total size
of its contents exceeds its capacity in bytes:

```python
from claudecat.cache.lru import LRUCache

cache = LRUCache(1024)
cache.set_with_options("settings", b"...", 3, True)
len(cache)        # 1
cache.get("settings")  # b"..."
cache.stats()     # hits, misses, evictions, size, max_size, hit_rate
```

Items stored without the persistent flag (as `set` and `set_with_size`
store them) are treated as expired on their next lookup: they are dropped
and the lookup counts as a miss.

`FileBasedSummaryCache(persist_path)` keeps `FileSummary` objects as JSON
files under `<persist_path>/summaries`, loads them all into memory when it
is opened, writes each one atomically, and can be used as a context
manager. `get_file_summary` raises `SummaryNotFoundError` for an unknown
path.

## Reports

```python
from datetime import datetime, timezone

from claudecat.report.grouping import AnalysisResult, group_results
from claudecat.report.output import render_results

results = [
    AnalysisResult(
        timestamp=datetime(2025, 1, 1, 9, tzinfo=timezone.utc),
        model="claude-sonnet",
        input_tokens=1000,
        output_tokens=500,
        total_tokens=1500,
        cost_usd=0.01,
    )
]
grouped = group_results(results, "day")
print(render_results(grouped, "table", "day"), end="")
```

Groupings are `model`, `project`, `session`, `hour`, `day`, `week` and
`month`; with `breakdown=True` a time grouping is split per model.
Output formats are `table`, `json`, `csv` and `summary`. In tables, columns
whose header mentions input, output, cache, tokens or cost are
right-aligned.

## What this package does not do

It does not find or read Claude Code log files, parse them into usage
entries, or ship model prices; callers supply entries, results and
pricing. There is no live monitoring screen and no `analyze` command: the
`claudecat` command only reports version information, and reports are
produced by calling the `claudecat.report` functions from Python.