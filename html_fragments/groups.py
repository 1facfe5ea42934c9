"""
Groups fragment: fetch the forum's groups, pick the requested ones, render cards.

Caches (both keyed by cache_key("groups", args.id)):
  raw      -> filtered group dicts (GroupsResource)
  rendered -> assembled card markup, stored before the FORMATTED_GROUPS filter runs
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from markupsafe import Markup

from common import ForumConfig
from common_discourse import DiscourseAPIClient, DiscourseError, EmptyResult
from common_discourse.api.groups_cached import GroupsResource
from common_types import GroupsArgs
from discourse_cache import GroupsSnapshot, ResourceCache, cache_key

from .discourse_link import DiscourseLink
from .formatter import extract_excerpt, pluralize_count
from .hooks import ExtensionPoint, HookRegistry
from .templating import FragmentBuilder

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupCardVM:
    """Per-group values computed before any markup is emitted."""

    name: str
    display_name: str
    path: str
    title_link: Markup
    join_link: Optional[Markup]
    image_url: Optional[str]
    flair_url: Optional[str]
    member_text: Optional[str]
    description: Optional[str]


def group_display_name(group: Mapping[str, Any]) -> str:
    full_name = str(group.get("full_name") or "").strip()
    if full_name:
        return full_name
    return str(group.get("name") or "").replace("_", " ").replace("-", " ")


def join_link_text(link_open_text: str, display_name: str, link_close_text: str) -> str:
    parts = (str(link_open_text or "").strip(), display_name.strip(), str(link_close_text or "").strip())
    return " ".join(p for p in parts if p)


class DiscourseGroups:
    def __init__(
        self,
        config: ForumConfig,
        api: DiscourseAPIClient,
        *,
        raw_cache: ResourceCache,
        rendered_cache: ResourceCache,
        snapshot: GroupsSnapshot,
        hooks: HookRegistry,
    ):
        self.config = config
        self.api = api
        self.raw_cache = raw_cache
        self.rendered_cache = rendered_cache
        self.snapshot = snapshot
        self.hooks = hooks
        self.discourse_link = DiscourseLink(config)
        self.resource = GroupsResource(api, raw_cache, snapshot, ttl_s=config.groups_ttl_s)
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_formatted_groups(self, options: Optional[Mapping[str, Any]] = None) -> str:
        """Options mapping -> rendered groups fragment ("" when nothing can be shown)."""
        args = GroupsArgs.from_options(options)
        try:
            groups = self.get_discourse_groups(args)
            return self.format_groups(groups, args)
        except DiscourseError as e:
            self.logger.warning("Groups fragment unavailable: %s", e)
            return ""

    def get_discourse_groups(self, args: GroupsArgs) -> List[Dict[str, Any]]:
        """Non-automatic groups filtered by args.group_list (raises EmptyResult when none match)."""
        return self.resource.get(instance_id=args.id, selected=args.selected_group_names())

    def build_card(self, group: Mapping[str, Any], args: GroupsArgs) -> GroupCardVM:
        name = str(group.get("name") or "")
        display_name = group_display_name(group)
        path = f"/groups/{name}"

        join_link = None
        if group.get("allow_membership_requests") and args.show_join_link:
            classes = "wpds-join-group wpds-button" if args.add_button_styles else "wpds-join-group"
            join_link = self.discourse_link.get_discourse_link(
                join_link_text(args.link_open_text, display_name, args.link_close_text),
                path,
                classes,
                args.sso,
            )

        excerpt = extract_excerpt(group.get("bio_raw"), args.excerpt_length)
        member_count = group.get("user_count")

        return GroupCardVM(
            name=name,
            display_name=display_name,
            path=path,
            title_link=self.discourse_link.get_discourse_link(display_name, path, "wpds-group-title-link", args.sso),
            join_link=join_link,
            image_url=excerpt.image if args.show_images else None,
            flair_url=(str(group.get("flair_url") or "") or None) if args.show_images else None,
            member_text=pluralize_count(member_count) if member_count else None,
            description=excerpt.description or None,
        )

    def format_groups(self, groups: List[Dict[str, Any]], args: GroupsArgs) -> str:
        if not groups:
            raise EmptyResult("The groups list was empty.")

        key = cache_key("groups", args.id)
        output = self.rendered_cache.get(key)
        if output is None:
            output = self._render_groups(groups, args)
            self.rendered_cache.set(key, output, self.config.groups_ttl_s)
            self.api._cache_write("groups.rendered")
        else:
            self.api._cache_hit("groups.rendered")

        return self.hooks.apply(ExtensionPoint.FORMATTED_GROUPS, output, groups, {}, args)

    def _render_groups(self, groups: List[Dict[str, Any]], args: GroupsArgs) -> str:
        out = FragmentBuilder("groups.j2")
        out.emit("groups_open", tile=args.tile)

        for group in groups:
            card = self.build_card(group, args)
            ctx = {"card": card}

            out.emit("group_open")
            out.markup = self.hooks.apply(ExtensionPoint.GROUP_ABOVE_HEADER, out.markup, group, ctx, args)

            if card.image_url:
                out.emit("group_image", url=card.image_url)

            show_meta = args.show_header_metadata and bool(card.flair_url or card.member_text)
            out.emit(
                "group_header",
                title_link=card.title_link,
                flair_url=card.flair_url if show_meta else None,
                member_text=card.member_text if show_meta else None,
            )

            if args.show_description and card.description:
                out.emit("group_description", description=card.description)

            out.markup = self.hooks.apply(ExtensionPoint.GROUP_ABOVE_FOOTER, out.markup, group, ctx, args)
            out.emit("group_clamp_close")
            out.emit("group_footer", join_link=card.join_link)
            out.markup = self.hooks.apply(ExtensionPoint.GROUP_BELOW_FOOTER, out.markup, group, ctx, args)
            out.emit("group_close")

        out.emit("groups_close")
        self.logger.debug("Rendered %d group cards", len(groups))
        return out.markup

    def clear_cache(self) -> None:
        """Drop the groups snapshot and every groups entry in both caches."""
        self.snapshot.clear()
        dropped = self.raw_cache.invalidate_prefix("groups") + self.rendered_cache.invalidate_prefix("groups")
        _logger.info("Cleared groups caches (%d entries)", dropped)
