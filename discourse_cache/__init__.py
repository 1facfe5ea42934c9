"""Caches for forum data: TTL resource cache and the persisted groups snapshot."""

from .cache_groups_snapshot import GroupsSnapshot
from .cache_resource import CacheEntry, ResourceCache, cache_key

__all__ = ["CacheEntry", "GroupsSnapshot", "ResourceCache", "cache_key"]
