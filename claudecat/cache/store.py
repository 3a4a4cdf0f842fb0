"""A cache store that fronts the file cache."""

from __future__ import annotations

import glob
import threading
from dataclasses import dataclass, replace
from typing import Any, Optional

from claudecat.cache.file import CachedFile, FileCache

DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024


@dataclass
class StoreConfig:
    """Configuration of a :class:`Store`; non-positive sizes mean the default."""

    max_file_size: int = 0


class CacheMissError(LookupError):
    """Raised when a requested file is not in the cache."""


class Store:
    """Thread-safe cache store for files and their parsed entries."""

    def __init__(self, config: Optional[StoreConfig] = None) -> None:
        config = replace(config) if config is not None else StoreConfig()
        if config.max_file_size <= 0:
            config.max_file_size = DEFAULT_MAX_FILE_SIZE
        self.config = config
        self._file_cache = FileCache(config.max_file_size)
        self._lock = threading.RLock()

    def get_file(self, path: str) -> CachedFile:
        """Return the cached file; raise CacheMissError if it is not cached."""
        with self._lock:
            cached = self._file_cache.get_file(path)
            if cached is None:
                raise CacheMissError(f"file not found in cache: {path}")
            return cached

    def cache_file(self, path: str, content: bytes, entries: list[Any]) -> None:
        """Cache a file's content and parsed entries."""
        with self._lock:
            self._file_cache.cache_file_content(path, content, entries)

    def get_entries(self, path: str) -> list[Any]:
        """Return a file's parsed entries; raise CacheMissError if not cached."""
        with self._lock:
            entries = self._file_cache.get_entries(path)
            if entries is None:
                raise CacheMissError(f"entries not found in cache: {path}")
            return entries

    def preload(self, paths: list[str]) -> None:
        with self._lock:
            self._file_cache.preload(paths)

    def preload_pattern(self, pattern: str) -> None:
        with self._lock:
            self._file_cache.preload(sorted(glob.glob(pattern)))

    def invalidate_file(self, path: str) -> None:
        with self._lock:
            self._file_cache.invalidate_file(path)

    def invalidate_pattern(self, pattern: str) -> None:
        with self._lock:
            self._file_cache.invalidate_pattern(pattern)

    def clear(self) -> None:
        with self._lock:
            self._file_cache.clear()

    def cleanup(self) -> None:
        """Maintenance hook; eviction is already handled by the LRU policy."""
        with self._lock:
            return None