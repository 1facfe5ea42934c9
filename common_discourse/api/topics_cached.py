"""Topic listing and category list cached helpers.

Cache:
  raw ResourceCache key: "topics" or "topics_<instance id>"
  value: the listing JSON ({"users": [...], "topic_list": {"topics": [...]}, "categories": [...]})
         with "categories" and per-topic "cooked" filled in when available

  raw ResourceCache key: "categories"
  value: list of category dicts from /site.json
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from common_types import TopicSource, TopicsArgs
from discourse_cache import ResourceCache, cache_key

from .. import DiscourseError, ParseError
from .base_cached import CachedResourceBase

if TYPE_CHECKING:  # pragma: no cover
    from .. import DiscourseAPIClient

_logger = logging.getLogger(__name__)

TTL_POLICY_DESCRIPTION = "24h (listing and categories)"

# Poster id the forum uses for deleted/unknown users.
DELETED_USER_ID = -1


def display_topic(topic: Dict[str, Any]) -> bool:
    """Topic is shown iff not globally pinned, a regular topic, and posters[0] is a known user.

    Only the first poster is checked here; the original poster is resolved separately
    by scanning the whole poster list.
    """
    if topic.get("pinned_globally"):
        return False
    if topic.get("archetype") != "regular":
        return False
    posters = topic.get("posters") or []
    first = posters[0] if posters and isinstance(posters[0], dict) else {}
    return first.get("user_id") != DELETED_USER_ID


def topics_path(args: TopicsArgs) -> str:
    """Listing endpoint for the requested source."""
    if args.category:
        return f"/c/{urllib.parse.quote(args.category, safe='')}.json"
    if args.source == TopicSource.TOP:
        return f"/top/{args.period.value}.json"
    return "/latest.json"


class CategoriesResource(CachedResourceBase[List[Dict[str, Any]]]):
    def __init__(self, api: "DiscourseAPIClient", cache: ResourceCache, *, ttl_s: int):
        super().__init__(api, cache)
        self._ttl_s = int(ttl_s)

    @property
    def cache_name(self) -> str:
        return "categories"

    def api_call_format(self) -> str:
        return "REST GET /site.json"

    def cache_key(self, **kwargs: Any) -> str:
        return cache_key("categories")

    def ttl_s(self) -> int:
        return self._ttl_s

    def fetch(self, **kwargs: Any) -> List[Dict[str, Any]]:
        body = self.api.get("/site.json", authenticated=bool(kwargs.get("authenticated")))
        categories = body.get("categories")
        if not isinstance(categories, list):
            raise ParseError("An invalid response was returned when retrieving the Discourse categories.")
        return [c for c in categories if isinstance(c, dict)]


class TopicsResource(CachedResourceBase[Dict[str, Any]]):
    def __init__(
        self,
        api: "DiscourseAPIClient",
        cache: ResourceCache,
        categories: CategoriesResource,
        *,
        ttl_s: int,
    ):
        super().__init__(api, cache)
        self.categories = categories
        self._ttl_s = int(ttl_s)

    @property
    def cache_name(self) -> str:
        return "topics"

    def api_call_format(self) -> str:
        return "REST GET /latest.json | /top/{period}.json | /c/{category}.json (+ /site.json, /t/{id}.json)"

    def cache_key(self, **kwargs: Any) -> str:
        args: TopicsArgs = kwargs["args"]
        return cache_key("topics", args.id)

    def ttl_s(self) -> int:
        return self._ttl_s

    def is_cacheable(self, value: Dict[str, Any]) -> bool:
        return bool(value.get("topic_list"))

    @property
    def _authenticated(self) -> bool:
        # Anonymous listings never include private categories.
        return bool(self.api.config.display_private_topics)

    def fetch(self, **kwargs: Any) -> Dict[str, Any]:
        args: TopicsArgs = kwargs["args"]
        body = self.api.get(topics_path(args), authenticated=self._authenticated)
        topic_list = body.get("topic_list")
        if not isinstance(topic_list, dict) or not isinstance(topic_list.get("topics"), list):
            raise ParseError("An invalid response was returned when retrieving the Discourse topics.")

        if not isinstance(body.get("categories"), list):
            body["categories"] = self._categories_best_effort()

        if args.display_content and self.api.config.topic_content:
            self._add_topic_content(topic_list["topics"], max_topics=args.max_topics)
        return body

    def _categories_best_effort(self) -> List[Dict[str, Any]]:
        try:
            return self.categories.get(authenticated=self._authenticated)
        except DiscourseError as e:
            _logger.warning("Topic categories unavailable, rendering without badges: %s", e)
            return []

    def _first_post_cooked(self, topic_id: Any) -> Optional[str]:
        body = self.api.get(f"/t/{topic_id}.json", authenticated=self._authenticated)
        posts = (body.get("post_stream") or {}).get("posts") or []
        if posts and isinstance(posts[0], dict):
            cooked = posts[0].get("cooked")
            return str(cooked) if cooked else None
        return None

    def _add_topic_content(self, topics: List[Any], *, max_topics: int) -> None:
        """Fill topic["cooked"] for the topics that will actually be displayed."""
        filled = 0
        for topic in topics:
            if filled >= max_topics:
                break
            if not isinstance(topic, dict) or not display_topic(topic):
                continue
            filled += 1
            if topic.get("cooked"):
                continue
            try:
                cooked = self._first_post_cooked(topic.get("id"))
            except DiscourseError as e:
                _logger.warning("No content for topic %s: %s", topic.get("id"), e)
                continue
            if cooked:
                topic["cooked"] = cooked
