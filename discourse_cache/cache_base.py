#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Base class for optionally disk-backed caches with locking and persistence.

Shared by:
- cache_resource.py         (raw API data / rendered HTML, TTL entries)
- cache_groups_snapshot.py  (persisted non-automatic groups list)
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Set, Tuple

try:
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - best-effort on non-POSIX
    fcntl = None  # type: ignore

_logger = logging.getLogger(__name__)


@dataclass
class BaseCacheStats:
    """Basic cache statistics tracked automatically by BaseDiskCache."""
    hit: int = 0
    miss: int = 0
    write: int = 0


class BaseDiskCache:
    """Base class for thread-safe caches with optional disk persistence.

    Provides:
    - Thread-safe in-memory cache with Lock
    - Disk persistence with inter-process locking (fcntl) when `cache_file` is set
    - Lazy loading (load on first access)
    - Merge on write (handle concurrent writers); deleted keys stay deleted
    - Cache size tracking (initial disk count vs current memory count)

    With `cache_file=None` the cache lives in memory only and never touches disk.

    Subclasses implement the cache-specific get/put methods.
    """

    def __init__(self, *, cache_file: Optional[Path] = None, schema_version: int = 1):
        self._mu = Lock()
        self._cache_file = Path(cache_file) if cache_file is not None else None
        self._schema_version = schema_version
        self._data: Dict[str, Any] = {}
        self._loaded = False
        self._dirty = False
        self._deleted: Set[str] = set()
        self._cleared = False
        self._initial_disk_count: Optional[int] = None
        self.stats = BaseCacheStats()  # Track hits/misses/writes automatically

    @property
    def cache_file(self) -> Optional[Path]:
        return self._cache_file

    def _lock_file_path(self) -> Path:
        """Path to lock file (next to cache file)."""
        assert self._cache_file is not None
        return self._cache_file.with_name(f".{self._cache_file.name}.lock")

    def _acquire_disk_lock(self, *, timeout_s: float = 10.0) -> Optional[Any]:
        """Best-effort inter-process lock for the cache file.

        Returns file handle on success, None on failure/timeout.
        """
        if fcntl is None or self._cache_file is None:
            return None

        lock_path = self._lock_file_path()
        lock_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            fh = open(lock_path, "w")
        except OSError as e:
            _logger.debug("Cannot open cache lock %s: %s", lock_path, e)
            return None

        start = time.monotonic()
        while time.monotonic() - start < float(timeout_s):
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return fh
            except OSError:
                time.sleep(0.1)

        fh.close()
        return None

    def _release_disk_lock(self, lock_fh: Optional[Any]) -> None:
        """Release inter-process lock."""
        if lock_fh is None:
            return

        try:
            if fcntl is not None:
                fcntl.flock(lock_fh.fileno(), fcntl.LOCK_UN)
        except OSError:
            pass
        finally:
            lock_fh.close()

    def _read_disk_items(self) -> Dict[str, Any]:
        """Read the items dict from disk ({} when missing or unreadable)."""
        if self._cache_file is None or not self._cache_file.exists():
            return {}
        try:
            raw = json.loads(self._cache_file.read_text() or "{}")
        except (OSError, ValueError) as e:
            _logger.warning("Ignoring unreadable cache file %s: %s", self._cache_file, e)
            return {}
        if not isinstance(raw, dict) or not isinstance(raw.get("items"), dict):
            return {}
        return dict(raw["items"])

    def _load_once(self) -> None:
        """Load cache from disk (once per instance)."""
        if self._loaded:
            return
        self._loaded = True

        items = self._read_disk_items()
        self._initial_disk_count = len(items)
        self._data = {"version": self._schema_version, "items": items}

    def _persist(self) -> None:
        """Persist cache to disk with inter-process merge (best-effort).

        Disk errors are logged and the in-memory items are kept; the cache stays dirty so a
        later write can retry.
        """
        if not self._dirty:
            return
        if self._cache_file is None:
            self._dirty = False
            return

        try:
            self._write_merged()
        except OSError as e:
            _logger.warning("Cache %s not persisted: %s", self._cache_file, e)

    def _write_merged(self) -> None:
        assert self._cache_file is not None
        self._cache_file.parent.mkdir(parents=True, exist_ok=True)
        mem_items: Dict[str, Any] = dict(self._get_items())

        lock_fh = self._acquire_disk_lock(timeout_s=10.0)
        try:
            # Merge with disk state (handle concurrent writers)
            disk_items = {} if self._cleared else self._read_disk_items()
            for key in self._deleted:
                disk_items.pop(key, None)

            # Merge: disk first, then memory wins for conflicts
            merged = {
                "version": self._schema_version,
                "items": {**disk_items, **mem_items},
            }

            # Atomic write (tmp file + rename)
            tmp = f"{self._cache_file}.tmp.{os.getpid()}"
            Path(tmp).write_text(json.dumps(merged, separators=(",", ":")))
            os.replace(tmp, str(self._cache_file))

            # Update in-memory view to match what we wrote
            self._data = merged
            self._dirty = False
            self._deleted.clear()
            self._cleared = False
        finally:
            self._release_disk_lock(lock_fh)

    def flush(self) -> None:
        """Persist cache to disk."""
        with self._mu:
            self._persist()

    def get_cache_sizes(self) -> Tuple[int, int]:
        """Return (mem_count, disk_count) for cache entries.

        disk_count is the initial count before this run's modifications.
        """
        with self._mu:
            self._load_once()
            mem_count = len(self._get_items())
            disk_count = self._initial_disk_count if self._initial_disk_count is not None else 0
            return (mem_count, disk_count)

    def _get_items(self) -> Dict[str, Any]:
        """Get items dict (for subclass use)."""
        items = self._data.get("items") if isinstance(self._data, dict) else None
        if not isinstance(items, dict):
            items = {}
            self._data = {"version": self._schema_version, "items": items}
        return items

    def _check_item(self, key: str) -> Optional[Any]:
        """Return the raw item for `key` (None if absent) and track hit/miss stats."""
        value = self._get_items().get(key)
        if value is not None:
            self.stats.hit += 1
        else:
            self.stats.miss += 1
        return value

    def _set_item(self, key: str, value: Any) -> None:
        """Set an item and mark dirty (for subclass use)."""
        self._get_items()[key] = value
        self._deleted.discard(key)
        self._dirty = True
        self.stats.write += 1

    def _delete_item(self, key: str) -> bool:
        """Remove an item and remember the deletion so a disk merge cannot resurrect it."""
        existed = self._get_items().pop(key, None) is not None
        self._deleted.add(key)
        self._dirty = True
        return existed

    def _clear_items(self) -> None:
        """Drop every item (memory and, on next persist, disk)."""
        self._data = {"version": self._schema_version, "items": {}}
        self._deleted.clear()
        self._cleared = True
        self._dirty = True
