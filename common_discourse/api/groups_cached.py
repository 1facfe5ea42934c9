"""Groups list cached helper.

Cache:
  raw ResourceCache key: "groups" or "groups_<instance id>"
  value: list of group dicts (non-automatic, filtered by the caller's allow-list)

Source of the unfiltered list, in order:
  1. GroupsSnapshot (persisted non-automatic groups; cleared on "clear cache")
  2. GET /groups.json (automatic groups dropped, snapshot written)
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, TYPE_CHECKING

from discourse_cache import GroupsSnapshot, ResourceCache, cache_key

from .. import EmptyResult, ParseError
from .base_cached import CachedResourceBase

if TYPE_CHECKING:  # pragma: no cover
    from .. import DiscourseAPIClient


TTL_POLICY_DESCRIPTION = "24h (filtered list); unfiltered snapshot until cleared"


def non_automatic_groups(groups: Iterable[Any]) -> List[Dict[str, Any]]:
    """Drop empty entries and forum-managed (automatic) groups."""
    return [g for g in groups if isinstance(g, dict) and g and not g.get("automatic")]


def filter_groups(groups: List[Dict[str, Any]], selected: Iterable[str]) -> List[Dict[str, Any]]:
    """Keep groups whose name is in `selected` (exact match); all groups when `selected` is empty."""
    wanted = {str(n) for n in selected if str(n)}
    if not wanted:
        return list(groups)
    return [g for g in groups if g.get("name") and str(g["name"]) in wanted]


class GroupsResource(CachedResourceBase[List[Dict[str, Any]]]):
    def __init__(
        self,
        api: "DiscourseAPIClient",
        cache: ResourceCache,
        snapshot: GroupsSnapshot,
        *,
        ttl_s: int,
    ):
        super().__init__(api, cache)
        self.snapshot = snapshot
        self._ttl_s = int(ttl_s)

    @property
    def cache_name(self) -> str:
        return "groups"

    def api_call_format(self) -> str:
        return "REST GET /groups.json (Api-Key + Api-Username)"

    def cache_key(self, **kwargs: Any) -> str:
        return cache_key("groups", kwargs.get("instance_id"))

    def ttl_s(self) -> int:
        return self._ttl_s

    def non_automatic_groups(self) -> List[Dict[str, Any]]:
        """Unfiltered non-automatic groups from the snapshot, else from the forum."""
        snap = self.snapshot.get()
        if snap:
            self.api._cache_hit("groups.snapshot")
            return snap
        self.api._cache_miss("groups.snapshot")

        body = self.api.get("/groups.json")
        groups = body.get("groups")
        if not isinstance(groups, list) or not groups:
            raise ParseError("An invalid response was returned when retrieving the Discourse groups.")

        kept = non_automatic_groups(groups)
        self.snapshot.put(kept)
        return kept

    def fetch(self, **kwargs: Any) -> List[Dict[str, Any]]:
        selected: Iterable[str] = kwargs.get("selected") or ()
        chosen = filter_groups(self.non_automatic_groups(), selected)
        if not chosen:
            raise EmptyResult("No Discourse groups matched the group list.")
        return chosen

