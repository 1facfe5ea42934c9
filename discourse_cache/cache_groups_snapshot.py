"""Persisted snapshot of the forum's non-automatic groups.

Caching strategy:
  - Single key ("non_automatic_groups")
  - Value: list of group dicts exactly as returned by /groups.json (automatic groups removed)
  - No TTL: the snapshot lives until clear() is called (configuration change / "clear cache")
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from .cache_base import BaseDiskCache


class GroupsSnapshot(BaseDiskCache):
    """Snapshot of non-automatic groups, reused across renders in this process (and on disk).

    Stats (hit/miss/write) are tracked automatically by BaseDiskCache.
    """

    _SCHEMA_VERSION = 1
    _KEY = "non_automatic_groups"

    def __init__(self, *, cache_file: Optional[Path] = None):
        super().__init__(cache_file=cache_file, schema_version=self._SCHEMA_VERSION)

    def get(self) -> Optional[List[Dict[str, Any]]]:
        """Return the snapshot, or None if nothing usable is stored."""
        with self._mu:
            self._load_once()
            value = self._check_item(self._KEY)
            if not isinstance(value, list) or not value:
                return None
            return [g for g in value if isinstance(g, dict)]

    def put(self, groups: List[Dict[str, Any]]) -> None:
        if not groups:
            return
        with self._mu:
            self._load_once()
            self._set_item(self._KEY, list(groups))
            self._persist()

    def clear(self) -> None:
        with self._mu:
            self._load_once()
            self._delete_item(self._KEY)
            self._persist()
