"""
Inbound surface: one object per forum configuration, owning the client, caches and hooks.

Every render_* method returns an HTML string and never raises; failures are logged and
degrade to "".
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from common import ForumConfig
from common_discourse import DiscourseAPIClient, DiscourseError
from common_types import TopicsArgs
from discourse_cache import GroupsSnapshot, ResourceCache

from .groups import DiscourseGroups
from .hooks import HookRegistry
from .topics import DiscourseTopicFormatter, DiscourseTopics

_logger = logging.getLogger(__name__)

RAW_CACHE_FILE = "discourse_raw_cache.json"
RENDERED_CACHE_FILE = "discourse_rendered_cache.json"
GROUPS_SNAPSHOT_FILE = "discourse_groups_snapshot.json"


class DiscourseEmbeds:
    def __init__(
        self,
        config: ForumConfig,
        *,
        hooks: Optional[HookRegistry] = None,
        api: Optional[DiscourseAPIClient] = None,
        raw_cache: Optional[ResourceCache] = None,
        rendered_cache: Optional[ResourceCache] = None,
        snapshot: Optional[GroupsSnapshot] = None,
    ):
        self.config = config
        self.hooks = hooks or HookRegistry()
        self.api = api or DiscourseAPIClient(config)
        self.raw_cache = raw_cache or ResourceCache(name="raw", cache_file=config.cache_file(RAW_CACHE_FILE))
        self.rendered_cache = rendered_cache or ResourceCache(
            name="rendered", cache_file=config.cache_file(RENDERED_CACHE_FILE)
        )
        self.snapshot = snapshot or GroupsSnapshot(cache_file=config.cache_file(GROUPS_SNAPSHOT_FILE))

        self.groups = DiscourseGroups(
            config,
            self.api,
            raw_cache=self.raw_cache,
            rendered_cache=self.rendered_cache,
            snapshot=self.snapshot,
            hooks=self.hooks,
        )
        self.topic_formatter = DiscourseTopicFormatter(config, self.hooks)
        self.topics = DiscourseTopics(
            config,
            self.api,
            raw_cache=self.raw_cache,
            rendered_cache=self.rendered_cache,
            hooks=self.hooks,
            formatter=self.topic_formatter,
        )

    def render_groups(self, options: Optional[Mapping[str, Any]] = None) -> str:
        try:
            return self.groups.get_formatted_groups(options)
        except Exception:
            _logger.exception("Unexpected error rendering groups")
            return ""

    def render_topics(self, raw_response: Optional[Mapping[str, Any]], options: Optional[Mapping[str, Any]] = None) -> str:
        """Format an already-fetched listing response (no caching, no network)."""
        try:
            return self.topic_formatter.format_topics(raw_response, TopicsArgs.from_options(options))
        except DiscourseError as e:
            _logger.warning("Topic list unavailable: %s", e)
            return ""
        except Exception:
            _logger.exception("Unexpected error rendering topics")
            return ""

    def render_latest_topics(self, options: Optional[Mapping[str, Any]] = None) -> str:
        """Fetch (or reuse cached) listing for `options` and render it."""
        try:
            return self.topics.get_formatted_topics(options)
        except Exception:
            _logger.exception("Unexpected error rendering topics")
            return ""

    def clear_cache(self) -> None:
        self.groups.clear_cache()
        self.topics.clear_cache()

    def flush(self) -> None:
        """Write any pending cache changes to disk."""
        for cache in (self.raw_cache, self.rendered_cache, self.snapshot):
            cache.flush()
