"""
Topic list fragment.

DiscourseTopicFormatter turns a forum listing response into an <ul> of topic items.
DiscourseTopics wraps it with the raw/rendered caches (keys cache_key("topics", args.id)).

Item eligibility: not globally pinned, archetype "regular", posters[0] not the deleted
user. The original poster (username + avatar) is the poster whose description mentions
"Original Poster"; when none does, the item renders without them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from markupsafe import Markup

from common import DEFAULT_CATEGORIES_TTL_S, ForumConfig
from common_discourse import DiscourseAPIClient, DiscourseError
from common_discourse.api.topics_cached import CategoriesResource, TopicsResource, display_topic
from common_types import Position, TopicSource, TopPeriod, TopicsArgs
from discourse_cache import ResourceCache, cache_key

from .formatter import avatar_url, category_badge_html, find_category, format_created_at
from .hooks import ExtensionPoint, HookRegistry
from .sanitize import HtmlSanitizer
from .templating import FragmentBuilder

_logger = logging.getLogger(__name__)

ORIGINAL_POSTER_MARKER = "Original Poster"


@dataclass(frozen=True)
class TopicItemVM:
    """Per-topic values computed before any markup is emitted."""

    id: Any
    title: str
    url: str
    created_at: str
    category_slug: str
    category_badge: Markup
    like_count: int
    reply_count: int
    username: str
    avatar_url: str
    cooked: Optional[Markup]


def original_poster(topic: Mapping[str, Any], users: List[Any]) -> Optional[Dict[str, Any]]:
    """User record of the poster described as the original poster (last match wins)."""
    found = None
    for poster in topic.get("posters") or []:
        if not isinstance(poster, dict):
            continue
        if ORIGINAL_POSTER_MARKER not in str(poster.get("description") or ""):
            continue
        for user in users:
            if isinstance(user, dict) and user.get("id") == poster.get("user_id"):
                found = user
    return found


def live_refresh_enabled(config: ForumConfig, args: TopicsArgs) -> bool:
    return bool(
        config.ajax_refresh
        and args.enable_ajax
        and (args.source == TopicSource.LATEST or args.period == TopPeriod.DAILY)
    )


def topiclist_options(args: TopicsArgs) -> List[Tuple[str, str]]:
    """(name, value) pairs for the hidden data-wpds-* options div read by the refresher."""
    pairs: List[Tuple[str, str]] = []
    for f in fields(args):
        value = getattr(args, f.name)
        if value is None:
            continue
        if isinstance(value, bool):
            text = "true" if value else "false"
        elif isinstance(value, Enum):
            text = str(value.value)
        else:
            text = str(value)
        pairs.append((f.name.replace("_", "-"), text))
    return pairs


def add_display_to_safe_styles(styles: List[str], obj: Any, context: Mapping[str, Any], args: Any) -> List[str]:
    return list(styles) + ["display"]


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (ValueError, TypeError):
        return 0


class DiscourseTopicFormatter:
    def __init__(self, config: ForumConfig, hooks: HookRegistry, sanitizer: Optional[HtmlSanitizer] = None):
        self.config = config
        self.hooks = hooks
        self.sanitizer = sanitizer or HtmlSanitizer(hooks)
        self.logger = logging.getLogger(self.__class__.__name__)

    def build_item(self, topic: Mapping[str, Any], response: Mapping[str, Any]) -> TopicItemVM:
        base = self.config.base_url or ""
        category = find_category(dict(topic), response.get("categories"))
        poster = original_poster(topic, list(response.get("users") or []))
        cooked = topic.get("cooked")
        return TopicItemVM(
            id=topic.get("id"),
            title=str(topic.get("title") or ""),
            url=f"{base}/t/{topic.get('slug') or ''}/{topic.get('id')}",
            created_at=format_created_at(
                topic.get("created_at"),
                date_format=self.config.datetime_format,
                tz_name=self.config.timezone,
            ),
            category_slug=str((category or {}).get("slug") or ""),
            category_badge=category_badge_html(category) or Markup(""),
            like_count=_as_int(topic.get("like_count")),
            reply_count=max(0, _as_int(topic.get("posts_count")) - 1),
            username=str((poster or {}).get("username") or ""),
            avatar_url=avatar_url(base, (poster or {}).get("avatar_template")),
            # Forum-rendered HTML; the whole fragment goes through the sanitizer afterwards.
            cooked=Markup(cooked) if cooked else None,
        )

    def format_topics(self, response: Optional[Mapping[str, Any]], args: TopicsArgs) -> str:
        if not self.config.base_url or not isinstance(response, Mapping) or not response.get("topic_list"):
            return ""

        self.hooks.notify(ExtensionPoint.BEFORE_TOPICLIST, response, None, {}, args)
        # Returning a falsy value skips the built-in markup; AFTER_TOPICLIST_FORMATTING can supply its own.
        use_plugin_formatting = self.hooks.apply(ExtensionPoint.USE_PLUGIN_TOPICLIST_FORMATTING, True, response, {}, args)
        output = self._render_topic_list(response, args) if use_plugin_formatting else ""

        with self.hooks.registered(ExtensionPoint.SAFE_STYLE_CSS, add_display_to_safe_styles):
            output = self.hooks.apply(ExtensionPoint.AFTER_TOPICLIST_FORMATTING, output, response, {}, args)
            if self.config.dev_mode:
                self.logger.debug("dev_mode: returning the topic list unsanitized")
                return output
            return self.sanitizer.sanitize(output)

    def _render_topic_list(self, response: Mapping[str, Any], args: TopicsArgs) -> str:
        topic_list = response.get("topic_list") or {}
        topics = (topic_list.get("topics") if isinstance(topic_list, dict) else None) or []
        refresh = live_refresh_enabled(self.config, args)

        out = FragmentBuilder("topics.j2")
        out.emit("topiclist_open", refresh=refresh, tile=args.tile)
        if refresh:
            out.emit("topiclist_options", options=topiclist_options(args))

        topic_count = 0
        for topic in topics:
            if topic_count >= args.max_topics:
                break
            if not isinstance(topic, dict) or not display_topic(topic):
                continue

            item = self.build_item(topic, response)
            category = find_category(topic, response.get("categories"))
            ctx = {"category": category, "avatar_url": item.avatar_url, "item": item}

            out.emit("topic_open", category_slug=item.category_slug)
            out.markup = self.hooks.apply(ExtensionPoint.TOPICLIST_ABOVE_HEADER, out.markup, topic, ctx, args)
            out.emit(
                "topic_header",
                item=item,
                username_top=args.username_position == Position.TOP,
                date_top=args.date_position == Position.TOP,
                category_top=args.category_position == Position.TOP,
            )
            if item.cooked:
                out.emit("topic_content", cooked=item.cooked)
            out.markup = self.hooks.apply(ExtensionPoint.TOPICLIST_ABOVE_FOOTER, out.markup, topic, ctx, args)
            out.emit("topic_clamp_close")

            out.emit("topic_footer_open")
            if args.display_avatars and item.avatar_url:
                avatar = FragmentBuilder("topics.j2").emit("topic_avatar", url=item.avatar_url).markup
                out.markup += str(self.hooks.apply(ExtensionPoint.TOPICLIST_AVATAR, avatar, item.avatar_url, ctx, args))
            out.emit(
                "topic_footer_meta",
                item=item,
                username_bottom=args.username_position == Position.BOTTOM,
                date_bottom=args.date_position == Position.BOTTOM,
                category_bottom=args.category_position == Position.BOTTOM,
            )
            out.emit("topic_footer_close")
            out.markup = self.hooks.apply(ExtensionPoint.TOPICLIST_BELOW_FOOTER, out.markup, topic, ctx, args)
            out.emit("topic_close")

            topic_count += 1

        out.emit("topiclist_close")
        self.logger.debug("Rendered %d topics (max_topics=%d)", topic_count, args.max_topics)
        return out.markup


class DiscourseTopics:
    def __init__(
        self,
        config: ForumConfig,
        api: DiscourseAPIClient,
        *,
        raw_cache: ResourceCache,
        rendered_cache: ResourceCache,
        hooks: HookRegistry,
        formatter: Optional[DiscourseTopicFormatter] = None,
    ):
        self.config = config
        self.api = api
        self.raw_cache = raw_cache
        self.rendered_cache = rendered_cache
        self.formatter = formatter or DiscourseTopicFormatter(config, hooks)
        self.categories = CategoriesResource(api, raw_cache, ttl_s=DEFAULT_CATEGORIES_TTL_S)
        self.resource = TopicsResource(api, raw_cache, self.categories, ttl_s=config.topics_ttl_s)
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_topics(self, args: TopicsArgs) -> Dict[str, Any]:
        return self.resource.get(args=args)

    def get_formatted_topics(self, options: Optional[Mapping[str, Any]] = None) -> str:
        args = TopicsArgs.from_options(options)
        key = cache_key("topics", args.id)

        cached = self.rendered_cache.get(key)
        if cached is not None:
            self.api._cache_hit("topics.rendered")
            return cached

        try:
            response = self.get_topics(args)
        except DiscourseError as e:
            self.logger.warning("Topic list unavailable: %s", e)
            return ""

        output = self.formatter.format_topics(response, args)
        if output:
            self.rendered_cache.set(key, output, self.config.topics_ttl_s)
            self.api._cache_write("topics.rendered")
        return output

    def clear_cache(self) -> None:
        dropped = self.raw_cache.invalidate_prefix("topics") + self.rendered_cache.invalidate_prefix("topics")
        self.categories.invalidate()
        _logger.info("Cleared topic caches (%d entries)", dropped)
