"""TTL cache for forum resources (raw API data and rendered HTML).

Caching strategy:
  - Key: cache_key(kind, instance_id) -> "groups", "groups_<id>", "topics_<id>", ...
  - Value: {"value": <payload>, "stored_at": <epoch float>, "ttl": <seconds>}
  - Lazy expiry: an entry older than its TTL is a miss when read (no sweeper)
  - Two independent instances are used, one for raw data and one for rendered HTML;
    they share key construction but never invalidate each other.

Concurrent misses are not serialized: two callers may both recompute and store
the same key (last write wins). Payloads are idempotent for identical inputs.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .cache_base import BaseDiskCache


def cache_key(kind: str, instance_id: Optional[str] = None) -> str:
    """Stable key for a resource kind plus an optional caller-supplied instance id.

    >>> cache_key("groups")
    'groups'
    >>> cache_key("groups", "sidebar")
    'groups_sidebar'
    """
    ident = str(instance_id).strip() if instance_id is not None else ""
    return f"{kind}_{ident}" if ident else str(kind)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    ttl: int

    def is_fresh(self, now: float) -> bool:
        return (now - self.stored_at) < self.ttl

    def to_disk_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "stored_at": self.stored_at, "ttl": self.ttl}

    @classmethod
    def from_disk_dict(cls, key: str, d: Any) -> Optional["CacheEntry"]:
        if not isinstance(d, dict) or "value" not in d:
            return None
        try:
            return cls(key=key, value=d["value"], stored_at=float(d.get("stored_at") or 0), ttl=int(d.get("ttl") or 0))
        except (ValueError, TypeError):
            return None


class ResourceCache(BaseDiskCache):
    """Key/value cache with per-entry TTL and lazy expiry.

    Stats (hit/miss/write) are tracked automatically by BaseDiskCache; an expired
    entry counts as a miss.
    """

    _SCHEMA_VERSION = 1

    def __init__(
        self,
        *,
        name: str,
        cache_file: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(cache_file=cache_file, schema_version=self._SCHEMA_VERSION)
        self.name = name
        self._clock = clock

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the fresh entry for `key`, or None (missing, malformed or expired)."""
        with self._mu:
            self._load_once()
            raw = self._get_items().get(key)
            entry = CacheEntry.from_disk_dict(key, raw)
            if entry is None or not entry.is_fresh(self._clock()):
                self.stats.miss += 1
                if raw is not None:
                    # Stale or malformed: drop it from memory, leave disk to the next write.
                    self._get_items().pop(key, None)
                return None
            self.stats.hit += 1
            return entry

    def get(self, key: str) -> Optional[Any]:
        """Cached value for `key`, or None on a miss."""
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl: int) -> None:
        """Store `value` for `ttl` seconds. None is never stored (a miss leaves no tombstone)."""
        if value is None or int(ttl) <= 0:
            return
        entry = CacheEntry(key=key, value=value, stored_at=float(self._clock()), ttl=int(ttl))
        with self._mu:
            self._load_once()
            self._set_item(key, entry.to_disk_dict())
            self._persist()

    def invalidate(self, key: str) -> bool:
        """Drop `key`. Returns True if an entry was present."""
        with self._mu:
            self._load_once()
            existed = self._delete_item(key)
            self._persist()
            return existed

    def invalidate_prefix(self, kind: str) -> int:
        """Drop every key produced by cache_key(kind, ...). Returns the number dropped."""
        with self._mu:
            self._load_once()
            keys = [k for k in self._get_items() if k == kind or k.startswith(f"{kind}_")]
            for k in keys:
                self._delete_item(k)
            self._persist()
            return len(keys)

    def clear(self) -> None:
        with self._mu:
            self._load_once()
            self._clear_items()
            self._persist()
