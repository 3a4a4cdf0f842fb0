"""Caching of file contents and their parsed usage entries."""

from __future__ import annotations

import glob
import hashlib
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime
from fnmatch import fnmatchcase
from typing import Any, Optional

from claudecat.cache.lru import LRUCache
from claudecat.cache.serializer import JsonSerializer
from claudecat.cache.stats import CacheStats

_ENTRY_SIZE_ESTIMATE = 200
_STRUCT_OVERHEAD = 100


@dataclass
class FileCacheStats(CacheStats):
    """Cache statistics plus file-specific metrics."""

    bytes_saved: int = 0
    parse_time: int = 0
    compress_ratio: float = 0.0


@dataclass
class CachedFile:
    """A file's content and parsed entries as held in the cache."""

    path: str = ""
    content: bytes = b""
    entries: Optional[list[Any]] = None
    mod_time: float = 0.0
    size: int = 0
    checksum: str = ""
    compressed: bool = False
    parsed_at: Optional[datetime] = None


def _path_match(pattern: str, name: str) -> bool:
    """Shell-style match where wildcards never cross a path separator."""
    pattern_parts = pattern.split(os.sep)
    name_parts = name.split(os.sep)
    if len(pattern_parts) != len(name_parts):
        return False
    return all(fnmatchcase(part, pat) for pat, part in zip(pattern_parts, name_parts))


def _calculate_size(cached: CachedFile) -> int:
    return (
        len(cached.path.encode("utf-8"))
        + len(cached.content)
        + len(cached.entries or ()) * _ENTRY_SIZE_ESTIMATE
        + len(cached.checksum.encode("utf-8"))
        + _STRUCT_OVERHEAD
    )


class FileCache:
    """LRU cache of files keyed by path, validated against modification time."""

    def __init__(self, max_size: int) -> None:
        self._cache = LRUCache(max_size)
        self.serializer = JsonSerializer()
        self._stats = FileCacheStats(**asdict(self._cache.stats()))

    def get_file(self, path: str) -> Optional[CachedFile]:
        """Return the cached file, or ``None`` if missing, invalid or outdated."""
        try:
            info = os.stat(path)
        except OSError:
            return None

        value = self._cache.get(path)
        if value is None:
            return None
        if not isinstance(value, CachedFile):
            self._cache.delete(path)
            return None
        if value.mod_time != info.st_mtime:
            self._cache.delete(path)
            return None
        return value

    def set_file(self, path: str, cached: CachedFile) -> None:
        """Store ``cached`` under ``path``; raise ValueError if it is too large."""
        cached.path = path
        cached.parsed_at = datetime.now()
        self._cache.set_with_size(path, cached, _calculate_size(cached))

    def get_entries(self, path: str) -> Optional[list[Any]]:
        """Return the parsed entries of a cached file, or ``None`` on a miss."""
        cached = self.get_file(path)
        if cached is None:
            return None
        return list(cached.entries or [])

    def invalidate_file(self, path: str) -> None:
        """Drop a file from the cache."""
        self._cache.delete(path)

    def invalidate_pattern(self, pattern: str) -> None:
        """Drop every cached path matching a shell-style pattern."""
        for key in [k for k in self._cache.keys() if _path_match(pattern, k)]:
            self._cache.delete(key)

    def cache_file_content(self, path: str, content: bytes, entries: list[Any]) -> None:
        """Cache ``content`` and its parsed ``entries``; raise OSError if ``path`` cannot be read."""
        info = os.stat(path)
        cached = CachedFile(
            path=path,
            content=content,
            entries=entries,
            mod_time=info.st_mtime,
            size=info.st_size,
            checksum=hashlib.md5(content).hexdigest(),
        )
        self.set_file(path, cached)

    def file_cache_stats(self) -> FileCacheStats:
        """Statistics of the underlying cache plus file metrics."""
        base = asdict(self._cache.stats())
        for name, value in base.items():
            setattr(self._stats, name, value)
        return FileCacheStats(**asdict(self._stats))

    def preload(self, paths: list[str]) -> None:
        """Cache the raw content of each readable file; unreadable ones are skipped."""
        for path in paths:
            if not os.path.exists(path):
                continue
            if self.get_file(path) is not None:
                continue
            try:
                with open(path, "rb") as handle:
                    content = handle.read()
                info = os.stat(path)
            except OSError:
                continue
            cached = CachedFile(
                path=path,
                content=content,
                entries=None,
                mod_time=info.st_mtime,
                size=info.st_size,
                checksum=hashlib.md5(content).hexdigest(),
            )
            try:
                self.set_file(path, cached)
            except ValueError:
                continue

    def warm_cache(self, pattern: str) -> None:
        """Preload every file matching a glob pattern."""
        self.preload(sorted(glob.glob(pattern)))

    def get(self, key: str) -> Any:
        return self._cache.get(key)

    def set(self, key: str, value: Any) -> None:
        self._cache.set(key, value)

    def delete(self, key: str) -> None:
        self._cache.delete(key)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def stats(self) -> CacheStats:
        return self._cache.stats()

    def is_stale(self, path: str) -> bool:
        """True unless the cached copy matches the file on disk."""
        cached = self.get_file(path)
        if cached is None:
            return True
        try:
            info = os.stat(path)
        except OSError:
            return True
        return cached.mod_time != info.st_mtime