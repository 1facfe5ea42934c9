"""Base class for cached Discourse API resources.

Goal: make each cached resource readable + debuggable by enforcing a small interface:
- TTL policy
- API call "display format"
- shared cache access pattern
- consistent cache + API statistics reporting

No inflight lock is taken: concurrent misses may both fetch and store (last write wins).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from discourse_cache import ResourceCache

if TYPE_CHECKING:  # pragma: no cover
    from .. import DiscourseAPIClient

T = TypeVar("T")


class CachedResourceBase(ABC, Generic[T]):
    """Base class for a cached resource backed by a ResourceCache.

    Subclasses define:
    - cache key format
    - TTL
    - the actual API fetch implementation
    - which fetched values are worth storing
    """

    def __init__(self, api: "DiscourseAPIClient", cache: ResourceCache):
        self.api: DiscourseAPIClient = api
        self.cache = cache

    @property
    @abstractmethod
    def cache_name(self) -> str:
        """Short name used for stats keys (e.g. 'groups')."""

    @abstractmethod
    def api_call_format(self) -> str:
        """Human-readable description of the API call(s) this resource performs."""

    @abstractmethod
    def cache_key(self, **kwargs: Any) -> str:
        """Return a stable cache key for this resource."""

    @abstractmethod
    def ttl_s(self) -> int:
        """TTL (seconds) for entries written by this resource."""

    @abstractmethod
    def fetch(self, **kwargs: Any) -> T:
        """Fetch from network (or a persisted snapshot) and return the value to cache."""

    def is_cacheable(self, value: T) -> bool:
        """Only non-empty values are stored; a miss never leaves a tombstone."""
        return bool(value)

    def invalidate(self, **kwargs: Any) -> bool:
        return self.cache.invalidate(self.cache_key(**kwargs))

    def get(self, **kwargs: Any) -> T:
        """Shared get() flow: cache lookup -> lazy TTL check -> fetch -> cache write."""
        key = self.cache_key(**kwargs)

        cached = self.cache.get(key)
        if cached is not None:
            self.api._cache_hit(self.cache_name)
            return cached
        self.api._cache_miss(self.cache_name)

        val = self.fetch(**kwargs)
        if self.is_cacheable(val):
            self.cache.set(key, val, self.ttl_s())
            self.api._cache_write(self.cache_name)
        return val
