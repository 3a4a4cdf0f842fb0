"""A disk-backed cache of file summaries, fully mirrored in memory."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from claudecat.cache.summary import FileSummary

logger = logging.getLogger(__name__)


class SummaryCacheError(Exception):
    """Raised when the summary cache cannot read or write its files."""


class SummaryNotFoundError(SummaryCacheError, LookupError):
    """Raised when no summary is cached for a path."""


@dataclass
class _Counters:
    hits: int = 0
    misses: int = 0
    writes: int = 0
    deletes: int = 0
    errors: int = 0
    memory_hits: int = 0


def _stat_mod_time(stat: os.stat_result) -> datetime:
    return datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)


def _load_summary(data: bytes) -> FileSummary:
    return FileSummary.from_dict(json.loads(data))


def _json_files(base_dir: str) -> Iterable[str]:
    for root, _dirs, files in os.walk(base_dir):
        for name in files:
            if name.endswith(".json"):
                yield os.path.join(root, name)


class FileBasedSummaryCache:
    """File summaries stored as JSON under ``<persist_path>/summaries``."""

    def __init__(self, persist_path: str) -> None:
        self.base_dir = os.path.join(persist_path, "summaries")
        try:
            os.makedirs(self.base_dir, exist_ok=True)
        except OSError as err:
            raise SummaryCacheError(f"failed to create cache directory: {err}") from err
        self._memory: dict[str, FileSummary] = {}
        self._counters = _Counters()
        self._lock = threading.RLock()
        self._preload()
        logger.info(
            "Initialized file-based cache at %s with %d preloaded summaries",
            self.base_dir,
            len(self._memory),
        )

    def _preload(self) -> None:
        started = time.monotonic()
        count = 0
        for path in _json_files(self.base_dir):
            try:
                with open(path, "rb") as handle:
                    data = handle.read()
            except OSError as err:
                logger.debug("Failed to read cache file %s: %s", path, err)
                continue
            try:
                summary = _load_summary(data)
            except (ValueError, TypeError, AttributeError) as err:
                logger.debug("Failed to unmarshal cache file %s: %s", path, err)
                continue
            self._memory[summary.absolute_path] = summary
            count += 1
            if count % 100 == 0:
                logger.debug("Preloaded %d summaries...", count)
        logger.info("Preloaded %d summaries in %.3fs", count, time.monotonic() - started)

    def cache_file_path(self, absolute_path: str) -> str:
        """Where the summary for ``absolute_path`` is stored on disk."""
        digest = hashlib.md5(absolute_path.encode("utf-8")).hexdigest()
        return os.path.join(self.base_dir, digest[:2], digest + ".json")

    def get_file_summary(self, absolute_path: str) -> FileSummary:
        """Return the cached summary; raise SummaryNotFoundError if there is none."""
        with self._lock:
            summary = self._memory.get(absolute_path)
            if summary is not None:
                self._counters.memory_hits += 1
                self._counters.hits += 1
                return summary

            cache_file = self.cache_file_path(absolute_path)
            try:
                with open(cache_file, "rb") as handle:
                    data = handle.read()
            except FileNotFoundError:
                self._counters.misses += 1
                raise SummaryNotFoundError(f"file summary not found: {absolute_path}") from None
            except OSError as err:
                self._counters.errors += 1
                raise SummaryCacheError(f"failed to read cache file: {err}") from err

            try:
                summary = _load_summary(data)
            except (ValueError, TypeError, AttributeError) as err:
                self._counters.errors += 1
                raise SummaryCacheError(f"failed to unmarshal summary: {err}") from err

            self._memory[absolute_path] = summary
            self._counters.hits += 1
            return summary

    def set_file_summary(self, summary: FileSummary) -> None:
        """Store ``summary`` in memory and write it atomically to disk."""
        with self._lock:
            self._memory[summary.absolute_path] = summary
            cache_file = self.cache_file_path(summary.absolute_path)
            try:
                os.makedirs(os.path.dirname(cache_file), exist_ok=True)
            except OSError as err:
                self._counters.errors += 1
                raise SummaryCacheError(f"failed to create cache subdirectory: {err}") from err

            try:
                data = json.dumps(summary.to_dict(), indent=2)
            except (TypeError, ValueError) as err:
                self._counters.errors += 1
                raise SummaryCacheError(f"failed to marshal summary: {err}") from err

            tmp_file = cache_file + ".tmp"
            try:
                with open(tmp_file, "w", encoding="utf-8") as handle:
                    handle.write(data)
            except OSError as err:
                self._counters.errors += 1
                raise SummaryCacheError(f"failed to write cache file: {err}") from err

            try:
                os.replace(tmp_file, cache_file)
            except OSError as err:
                self._counters.errors += 1
                try:
                    os.remove(tmp_file)
                except OSError:
                    pass
                raise SummaryCacheError(f"failed to rename cache file: {err}") from err

            self._counters.writes += 1

    def has_file_summary(self, absolute_path: str) -> bool:
        """True if a summary for ``absolute_path`` is held in memory."""
        with self._lock:
            return absolute_path in self._memory

    def invalidate_file_summary(self, absolute_path: str) -> None:
        """Drop the summary from memory and disk; a missing file is not an error."""
        with self._lock:
            self._memory.pop(absolute_path, None)
            try:
                os.remove(self.cache_file_path(absolute_path))
            except FileNotFoundError:
                pass
            except OSError as err:
                self._counters.errors += 1
                raise SummaryCacheError(f"failed to delete cache file: {err}") from err
            self._counters.deletes += 1

    def is_file_changed(self, file_path: str, stat: os.stat_result) -> bool:
        """True if the file is not cached or its modification time or size changed."""
        try:
            summary = self.get_file_summary(file_path)
        except SummaryCacheError:
            return True
        return summary.is_expired(_stat_mod_time(stat), stat.st_size)

    def batch_set(self, summaries: Iterable[FileSummary]) -> None:
        """Store each summary in turn, stopping at the first failure."""
        for summary in summaries:
            try:
                self.set_file_summary(summary)
            except SummaryCacheError as err:
                raise SummaryCacheError(
                    f"failed to set summary for {summary.absolute_path}: {err}"
                ) from err

    def clear(self) -> None:
        """Remove every summary from memory and disk."""
        with self._lock:
            self._memory = {}
            try:
                shutil.rmtree(self.base_dir)
            except FileNotFoundError:
                pass
            except OSError as err:
                raise SummaryCacheError(f"failed to remove cache directory: {err}") from err
            try:
                os.makedirs(self.base_dir, exist_ok=True)
            except OSError as err:
                raise SummaryCacheError(f"failed to recreate cache directory: {err}") from err
            logger.info("Cache cleared")

    def get_stats(self) -> dict[str, Any]:
        """Counters, disk usage and totals over the cached summaries."""
        with self._lock:
            total_size = 0
            file_count = 0
            for path in _json_files(self.base_dir):
                try:
                    total_size += os.path.getsize(path)
                except OSError:
                    continue
                file_count += 1

            summaries = list(self._memory.values())
            counters = self._counters
            lookups = counters.hits + counters.misses
            return {
                "cached_files": len(summaries),
                "disk_files": file_count,
                "total_entries": sum(s.entry_count for s in summaries),
                "total_cost": sum(s.total_cost for s in summaries),
                "total_tokens": sum(s.total_tokens for s in summaries),
                "cache_size_bytes": total_size,
                "cache_size_mb": total_size / 1024 / 1024,
                "hits": counters.hits,
                "memory_hits": counters.memory_hits,
                "misses": counters.misses,
                "writes": counters.writes,
                "deletes": counters.deletes,
                "errors": counters.errors,
                "hit_rate": counters.hits / lookups if lookups > 0 else 0.0,
                "persist_path": self.base_dir,
            }

    def close(self) -> None:
        """Release the in-memory mirror; summaries stay on disk and reload on demand."""
        with self._lock:
            released = len(self._memory)
            self._memory = {}
        logger.debug("Closed summary cache, released %d summaries from memory", released)

    def __enter__(self) -> "FileBasedSummaryCache":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()