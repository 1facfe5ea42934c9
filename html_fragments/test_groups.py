"""
Pytest tests for the groups fragment (DiscourseGroups).

Run from the repository root:
    pytest html_fragments/test_groups.py -v
"""

import logging

from bs4 import BeautifulSoup

from common import ForumConfig
from common_discourse import DiscourseAPIClient
from common_types import GroupsArgs
from discourse_cache import GroupsSnapshot, ResourceCache
from html_fragments.groups import DiscourseGroups, group_display_name, join_link_text
from html_fragments.hooks import ExtensionPoint, HookRegistry


def _groups(config, clock=None):
    hooks = HookRegistry()
    kw = {"clock": clock} if clock is not None else {}
    groups = DiscourseGroups(
        config,
        DiscourseAPIClient(config),
        raw_cache=ResourceCache(name="raw", **kw),
        rendered_cache=ResourceCache(name="rendered", **kw),
        snapshot=GroupsSnapshot(),
        hooks=hooks,
    )
    return groups, hooks


def _soup(html):
    return BeautifulSoup(html, "html.parser")


# ============================================================================
# Naming helpers
# ============================================================================

def test_display_name_fallbacks():
    assert group_display_name({"name": "dev-team", "full_name": None}) == "dev team"
    assert group_display_name({"name": "design_crew"}) == "design crew"
    assert group_display_name({"name": "x", "full_name": "Design Crew"}) == "Design Crew"


def test_join_link_text_skips_empty_parts():
    assert join_link_text("Join the", "dev team", "") == "Join the dev team"
    assert join_link_text("", "dev team", "group") == "dev team group"


# ============================================================================
# Rendering
# ============================================================================

def test_minimal_group_markup_is_exact(forum_config):
    groups, _hooks = _groups(forum_config)
    html = groups.format_groups([{"name": "solo"}], GroupsArgs())
    assert html == (
        '<div class="wpds-groups wpds-tile-wrapper"><div class="wpds-no-tile">'
        '<div class="wpds-group"><div class="wpds-group-clamp">'
        '<header><h4 class="wpds-groupname">'
        '<a class="wpds-group-title-link" href="https://forum.example.com/groups/solo">solo</a>'
        "</h4></header></div><footer></footer></div>"
        "</div></div>"
    )


def test_format_groups_is_deterministic(forum_config, groups_payload):
    groups_list = [g for g in groups_payload["groups"] if not g.get("automatic")]
    args = GroupsArgs.from_options({"id": "home", "show_description": True})

    first, _hooks = _groups(forum_config)
    second, _hooks = _groups(forum_config)
    html = first.format_groups(groups_list, args)

    assert html
    assert second.format_groups(groups_list, args) == html
    first.rendered_cache.clear()
    assert first.format_groups(groups_list, args) == html


def test_join_link_for_dev_team(forum_config, fake_forum, groups_payload):
    fake_forum.route("/groups.json", groups_payload)
    groups, _hooks = _groups(forum_config)

    html = groups.get_formatted_groups({"group_list": "dev-team"})
    soup = _soup(html)

    join = soup.select_one("div.wpds-footer-link a")
    assert join.get_text() == "Join the dev team"
    assert join["href"].endswith("/groups/dev-team")
    assert join["class"] == ["wpds-join-group", "wpds-button"]
    assert soup.select_one("a.wpds-group-title-link").get_text() == "dev team"
    assert len(soup.select("div.wpds-group")) == 1


def test_card_contents(forum_config, fake_forum, groups_payload):
    fake_forum.route("/groups.json", groups_payload)
    groups, _hooks = _groups(forum_config)

    soup = _soup(groups.get_formatted_groups({"tile": "true"}))

    assert soup.select_one("div.wpds-tile-wrapper > div")["class"] == ["wpds-tile"]
    cards = soup.select("div.wpds-group")
    assert [c.select_one("h4.wpds-groupname").get_text() for c in cards] == ["dev team", "Design Crew"]

    dev, design = cards
    assert dev.select_one("div.wpds-group-image img")["src"] == "https://img.example.com/logo.png"
    assert dev.select_one("img.wpds-group-avatar")["src"] == "https://forum.example.com/images/flair.png"
    assert dev.select_one("span.wpds-member-number").get_text() == "3 members"
    assert dev.select_one("div.wpds-group-description").get_text() == "Builders of things. Come say hi."

    assert design.select_one("span.wpds-member-number").get_text() == "1 member"
    # No membership requests -> empty footer
    assert design.select_one("footer").contents == []


def test_show_images_false_suppresses_every_img(forum_config, fake_forum, groups_payload):
    fake_forum.route("/groups.json", groups_payload)
    groups, _hooks = _groups(forum_config)
    html = groups.get_formatted_groups({"show_images": "false"})
    assert "<img" not in html
    assert "3 members" in html


def test_toggles(forum_config, fake_forum, groups_payload):
    fake_forum.route("/groups.json", groups_payload)
    groups, _hooks = _groups(forum_config)
    html = groups.get_formatted_groups(
        {
            "show_description": False,
            "show_header_metadata": False,
            "add_button_styles": False,
            "link_open_text": "",
            "link_close_text": "group",
        }
    )
    soup = _soup(html)
    assert soup.select("div.wpds-group-description") == []
    assert soup.select("div.wpds-metadata") == []
    join = soup.select_one("a.wpds-join-group")
    assert join["class"] == ["wpds-join-group"]
    assert join.get_text() == "dev team group"


def test_sso_link(fake_forum, groups_payload):
    config = ForumConfig(url="https://forum.example.com", api_key="k", api_username="u", enable_sso=True)
    fake_forum.route("/groups.json", groups_payload)
    groups, _hooks = _groups(config)

    soup = _soup(groups.get_formatted_groups({"group_list": "dev-team", "sso": "true"}))
    assert soup.select_one("a.wpds-join-group")["href"] == (
        "https://forum.example.com/session/sso?return_path=%2Fgroups%2Fdev-team"
    )

    # SSO requested but disabled site-wide -> plain link
    plain, _ = _groups(ForumConfig(url="https://forum.example.com", api_key="k", api_username="u"))
    soup = _soup(plain.format_groups([{"name": "dev-team"}], GroupsArgs.from_options({"sso": "true"})))
    assert soup.select_one("a.wpds-group-title-link")["href"] == "https://forum.example.com/groups/dev-team"


# ============================================================================
# Extension points
# ============================================================================

def test_card_hooks_fire_at_their_positions(forum_config):
    groups, hooks = _groups(forum_config)
    hooks.register(ExtensionPoint.GROUP_ABOVE_HEADER, lambda v, g, ctx, args: v + "<p>above-header</p>")
    hooks.register(ExtensionPoint.GROUP_ABOVE_FOOTER, lambda v, g, ctx, args: v + f"<p>{g['name']}</p>")
    hooks.register(ExtensionPoint.GROUP_BELOW_FOOTER, lambda v, g, ctx, args: v + "<p>below-footer</p>")

    html = groups.format_groups([{"name": "solo", "allow_membership_requests": True}], GroupsArgs())

    assert '<div class="wpds-group-clamp"><p>above-header</p><header>' in html
    assert "</header><p>solo</p></div><footer>" in html
    assert "</footer><p>below-footer</p></div>" in html


def test_card_hook_can_replace_all_markup(forum_config):
    groups, hooks = _groups(forum_config)
    hooks.register(ExtensionPoint.GROUP_BELOW_FOOTER, lambda v, g, ctx, args: "<section>mine</section>")
    html = groups.format_groups([{"name": "solo"}], GroupsArgs())
    assert html == "<section>mine</section></div></div></div>"


def test_rendered_cache_then_formatted_groups_filter(forum_config, fake_forum, groups_payload):
    fake_forum.route("/groups.json", groups_payload)
    groups, hooks = _groups(forum_config)
    card_calls = []
    hooks.register(ExtensionPoint.GROUP_ABOVE_HEADER, lambda v, g, ctx, args: card_calls.append(g["name"]) or v)
    hooks.register(ExtensionPoint.FORMATTED_GROUPS, lambda v, gs, ctx, args: f"<aside>{len(gs)}</aside>" + v)

    first = groups.get_formatted_groups({"id": "home"})
    second = groups.get_formatted_groups({"id": "home"})

    assert first == second
    assert first.startswith("<aside>2</aside><div")
    assert card_calls == ["dev-team", "design_crew"]
    assert fake_forum.paths() == ["/groups.json"]
    # The filter output is not what got cached
    assert groups.rendered_cache.get("groups_home").startswith("<div")


# ============================================================================
# Failures and cache clearing
# ============================================================================

def test_no_matching_groups_degrades_to_empty(forum_config, fake_forum, groups_payload, caplog):
    fake_forum.route("/groups.json", groups_payload)
    groups, _hooks = _groups(forum_config)
    with caplog.at_level(logging.WARNING):
        assert groups.get_formatted_groups({"group_list": "nobody"}) == ""
    assert "No Discourse groups matched" in caplog.text


def test_http_error_degrades_to_empty(forum_config, fake_forum):
    fake_forum.route("/groups.json", {"errors": ["nope"]}, status=500)
    groups, _hooks = _groups(forum_config)
    assert groups.get_formatted_groups() == ""
    assert "<" not in groups.get_formatted_groups()


def test_unconfigured_forum_degrades_to_empty(fake_forum):
    groups, _hooks = _groups(ForumConfig())
    assert groups.get_formatted_groups() == ""
    assert fake_forum.calls == []


def test_clear_cache_forces_refetch(forum_config, fake_forum, groups_payload):
    fake_forum.route("/groups.json", groups_payload)
    groups, _hooks = _groups(forum_config)

    groups.get_formatted_groups()
    groups.clear_cache()
    assert groups.snapshot.get() is None
    assert groups.rendered_cache.get("groups") is None

    groups.get_formatted_groups()
    assert fake_forum.paths() == ["/groups.json", "/groups.json"]


def test_ttl_expiry_refetches(forum_config, fake_forum, groups_payload, clock):
    fake_forum.route("/groups.json", groups_payload)
    groups, _hooks = _groups(forum_config, clock)

    groups.get_formatted_groups()
    clock.advance(forum_config.groups_ttl_s)
    groups.snapshot.clear()
    groups.get_formatted_groups()

    assert fake_forum.paths() == ["/groups.json", "/groups.json"]
