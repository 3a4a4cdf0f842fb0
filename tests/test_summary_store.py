import json
import os
from datetime import datetime, timezone

import pytest

from claudecat.cache.summary import FileSummary, ModelStat
from claudecat.cache.summary_store import (
    FileBasedSummaryCache,
    SummaryCacheError,
    SummaryNotFoundError,
)


def _summary(path: str, entries: int = 2, cost: float = 0.5, tokens: int = 100) -> FileSummary:
    return FileSummary(
        path=os.path.basename(path),
        absolute_path=path,
        mod_time=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
        file_size=1234,
        entry_count=entries,
        total_cost=cost,
        total_tokens=tokens,
        model_stats={"claude-opus": ModelStat(model="claude-opus", entry_count=entries)},
        checksum="deadbeef",
    )


@pytest.fixture
def cache(tmp_path):
    return FileBasedSummaryCache(str(tmp_path))


def test_creates_summaries_directory(tmp_path):
    store = FileBasedSummaryCache(str(tmp_path))
    assert store.base_dir == os.path.join(str(tmp_path), "summaries")
    assert os.path.isdir(store.base_dir)


def test_cache_file_path_layout(cache):
    path = cache.cache_file_path("")
    name = os.path.basename(path)
    assert name == "d41d8cd98f00b204e9800998ecf8427e.json"
    assert os.path.basename(os.path.dirname(path)) == name[:2]
    assert os.path.dirname(os.path.dirname(path)) == cache.base_dir


def test_cache_file_path_deterministic_and_distinct(cache):
    assert cache.cache_file_path("/a") == cache.cache_file_path("/a")
    assert cache.cache_file_path("/a") != cache.cache_file_path("/b")


def test_set_then_get(cache):
    summary = _summary("/logs/one.jsonl")
    cache.set_file_summary(summary)
    assert cache.get_file_summary("/logs/one.jsonl") == summary
    assert os.path.isfile(cache.cache_file_path("/logs/one.jsonl"))
    assert not os.path.exists(cache.cache_file_path("/logs/one.jsonl") + ".tmp")


def test_written_file_is_indented_json(cache):
    cache.set_file_summary(_summary("/logs/one.jsonl"))
    with open(cache.cache_file_path("/logs/one.jsonl"), encoding="utf-8") as handle:
        text = handle.read()
    assert json.loads(text)["absolute_path"] == "/logs/one.jsonl"
    assert '\n  "path"' in text


def test_preload_on_new_instance(tmp_path):
    first = FileBasedSummaryCache(str(tmp_path))
    summary = _summary("/logs/persisted.jsonl")
    first.set_file_summary(summary)

    second = FileBasedSummaryCache(str(tmp_path))
    assert second.has_file_summary("/logs/persisted.jsonl") is True
    assert second.get_file_summary("/logs/persisted.jsonl") == summary
    assert second.get_stats()["memory_hits"] == 1


def test_preload_skips_corrupt_files(tmp_path):
    bad_dir = tmp_path / "summaries" / "ab"
    bad_dir.mkdir(parents=True)
    (bad_dir / "broken.json").write_text("{not json", encoding="utf-8")
    store = FileBasedSummaryCache(str(tmp_path))
    assert store.get_stats()["cached_files"] == 0
    assert store.get_stats()["disk_files"] == 1


def test_get_missing_raises_not_found(cache):
    with pytest.raises(SummaryNotFoundError):
        cache.get_file_summary("/nowhere")
    assert cache.get_stats()["misses"] == 1


def test_not_found_is_a_lookup_error(cache):
    with pytest.raises(LookupError):
        cache.get_file_summary("/nowhere")


def test_get_loads_from_disk_when_not_in_memory(cache):
    summary = _summary("/logs/late.jsonl")
    target = cache.cache_file_path("/logs/late.jsonl")
    os.makedirs(os.path.dirname(target), exist_ok=True)
    with open(target, "w", encoding="utf-8") as handle:
        json.dump(summary.to_dict(), handle)

    assert cache.has_file_summary("/logs/late.jsonl") is False
    assert cache.get_file_summary("/logs/late.jsonl") == summary
    stats = cache.get_stats()
    assert stats["hits"] == 1
    assert stats["memory_hits"] == 0
    assert cache.has_file_summary("/logs/late.jsonl") is True


def test_get_corrupt_disk_file_raises_cache_error(cache):
    target = cache.cache_file_path("/logs/bad.jsonl")
    os.makedirs(os.path.dirname(target), exist_ok=True)
    with open(target, "w", encoding="utf-8") as handle:
        handle.write("garbage")
    with pytest.raises(SummaryCacheError) as info:
        cache.get_file_summary("/logs/bad.jsonl")
    assert not isinstance(info.value, SummaryNotFoundError)
    assert cache.get_stats()["errors"] == 1


def test_invalidate_removes_memory_and_disk(cache):
    cache.set_file_summary(_summary("/logs/gone.jsonl"))
    cache.invalidate_file_summary("/logs/gone.jsonl")
    assert cache.has_file_summary("/logs/gone.jsonl") is False
    assert not os.path.exists(cache.cache_file_path("/logs/gone.jsonl"))
    with pytest.raises(SummaryNotFoundError):
        cache.get_file_summary("/logs/gone.jsonl")


def test_invalidate_missing_counts_delete(cache):
    cache.invalidate_file_summary("/never/cached")
    assert cache.get_stats()["deletes"] == 1


def test_is_file_changed(tmp_path, cache):
    data_file = tmp_path / "usage.jsonl"
    data_file.write_text("{}\n", encoding="utf-8")
    stat = os.stat(data_file)
    path = str(data_file)

    assert cache.is_file_changed(path, stat) is True

    summary = _summary(path)
    summary.mod_time = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
    summary.file_size = stat.st_size
    cache.set_file_summary(summary)
    assert cache.is_file_changed(path, stat) is False

    data_file.write_text("{}\n{}\n", encoding="utf-8")
    assert cache.is_file_changed(path, os.stat(data_file)) is True


def test_batch_set_and_totals(cache):
    first = _summary("/logs/a.jsonl", entries=2, cost=0.25, tokens=40)
    second = _summary("/logs/b.jsonl", entries=5, cost=1.5, tokens=60)
    cache.batch_set([first, second])

    stats = cache.get_stats()
    assert stats["cached_files"] == 2
    assert stats["disk_files"] == 2
    assert stats["writes"] == 2
    assert stats["total_entries"] == first.entry_count + second.entry_count
    assert stats["total_tokens"] == first.total_tokens + second.total_tokens
    assert stats["total_cost"] == pytest.approx(first.total_cost + second.total_cost)
    assert stats["cache_size_bytes"] > 0
    assert stats["cache_size_mb"] == pytest.approx(stats["cache_size_bytes"] / 1024 / 1024)
    assert stats["persist_path"] == cache.base_dir


def test_hit_rate(cache):
    cache.set_file_summary(_summary("/logs/a.jsonl"))
    cache.get_file_summary("/logs/a.jsonl")
    with pytest.raises(SummaryNotFoundError):
        cache.get_file_summary("/logs/missing.jsonl")
    assert cache.get_stats()["hit_rate"] == 0.5


def test_hit_rate_zero_without_lookups(cache):
    assert cache.get_stats()["hit_rate"] == 0.0


def test_clear(cache):
    cache.batch_set([_summary("/logs/a.jsonl"), _summary("/logs/b.jsonl")])
    cache.clear()
    stats = cache.get_stats()
    assert stats["cached_files"] == 0
    assert stats["disk_files"] == 0
    assert os.path.isdir(cache.base_dir)
    assert cache.has_file_summary("/logs/a.jsonl") is False


def test_context_manager_returns_cache(tmp_path):
    with FileBasedSummaryCache(str(tmp_path)) as store:
        store.set_file_summary(_summary("/logs/ctx.jsonl"))
        assert store.has_file_summary("/logs/ctx.jsonl") is True
    assert store.close() is None