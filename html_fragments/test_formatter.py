"""
Pytest tests for html_fragments.formatter (pure helpers).

Run from the repository root:
    pytest html_fragments/test_formatter.py -v
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from html_fragments.formatter import (
    ELLIPSIS,
    avatar_url,
    category_badge_html,
    extract_excerpt,
    find_category,
    format_created_at,
    pluralize_count,
)


# ============================================================================
# extract_excerpt()
# ============================================================================

def test_excerpt_pulls_markdown_image_and_keeps_text():
    ex = extract_excerpt("Builders of things. ![logo](https://img.example.com/logo.png) Come say hi.", 55)
    assert ex.images == ("https://img.example.com/logo.png",)
    assert ex.image == "https://img.example.com/logo.png"
    assert ex.description == "Builders of things. Come say hi."


def test_excerpt_images_in_document_order():
    ex = extract_excerpt('<p>Hello <b>world</b></p><img src="a.png">![b](b.png)<img src="c.png">', 100)
    assert ex.images == ("a.png", "b.png", "c.png")
    assert ex.description == "Hello world"


def test_excerpt_markdown_link_keeps_text():
    assert extract_excerpt("See [the docs](https://example.com/docs) now", 100).description == "See the docs now"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("**Bold** and __strong__ words", "Bold and strong words"),
        ("An *em* and _em_ word", "An em and em word"),
        ("Run `make test` first", "Run make test first"),
        ("Keep snake__case and my_var_name", "Keep snake__case and my_var_name"),
        ("2 * 3 * 4", "2 * 3 * 4"),
    ],
)
def test_excerpt_strips_markdown_emphasis(text, expected):
    assert extract_excerpt(text, 100).description == expected


@pytest.mark.parametrize(
    "text,max_length,expected",
    [
        ("one two three four", 9, "one two" + ELLIPSIS),
        ("one two three", 7, "one two" + ELLIPSIS),
        ("one two", 7, "one two"),
        ("supercalifragilistic", 5, "super" + ELLIPSIS),
        ("one two", 0, ""),
    ],
)
def test_excerpt_truncates_at_word_boundary(text, max_length, expected):
    assert extract_excerpt(text, max_length).description == expected


def test_excerpt_empty_input():
    ex = extract_excerpt(None, 55)
    assert ex.description == ""
    assert ex.image is None


def test_excerpt_is_deterministic():
    raw = "# Title\n\n**Bold** text with ![i](x.png) and more words"
    assert extract_excerpt(raw, 20) == extract_excerpt(raw, 20)


# ============================================================================
# Small helpers
# ============================================================================

@pytest.mark.parametrize("n,expected", [(1, "1 member"), (0, "0 members"), (3, "3 members"), ("12", "12 members")])
def test_pluralize_count(n, expected):
    assert pluralize_count(n) == expected


def test_find_category():
    categories = [{"id": 4, "name": "Meta"}, {"id": 5, "name": "General"}]
    assert find_category({"category_id": 5}, categories)["name"] == "General"
    assert find_category({"category_id": 9}, categories) is None
    assert find_category({}, categories) is None
    assert find_category({"category_id": 5}, None) is None


def test_category_badge_html():
    badge = category_badge_html({"name": "General", "color": "0088CC"})
    assert str(badge) == (
        '<span class="wpds-category-icon" style="background-color: #0088CC;"></span>'
        '<span class="wpds-category-name">General</span>'
    )
    assert category_badge_html(None) is None


def test_category_badge_escapes_name_and_color():
    badge = str(category_badge_html({"name": "<b>Q&A</b>", "color": "red;x:url(y)"}))
    assert "&lt;b&gt;Q&amp;A&lt;/b&gt;" in badge
    assert "url" not in badge


def test_format_created_at_utc_and_bad_input():
    assert format_created_at("2024-03-01T23:30:00.000Z", date_format="%Y/%m/%d") == "2024/03/01"
    assert format_created_at("not a date", date_format="%Y/%m/%d") == ""
    assert format_created_at(None, date_format="%Y/%m/%d") == ""
    # Unknown zones fall back to UTC
    assert format_created_at("2024-03-01T23:30:00Z", date_format="%Y/%m/%d", tz_name="Nowhere/Special") == "2024/03/01"


def test_format_created_at_site_timezone():
    try:
        ZoneInfo("Europe/Berlin")
    except ZoneInfoNotFoundError:
        pytest.skip("no tz database")
    got = format_created_at("2024-03-01T23:30:00.000Z", date_format="%d.%m.%Y %H:%M", tz_name="Europe/Berlin")
    assert got == "02.03.2024 00:30"


def test_avatar_url():
    base = "https://forum.example.com"
    assert avatar_url(base, "/user_avatar/forum.example.com/alice/{size}/a.png") == (
        "https://forum.example.com/user_avatar/forum.example.com/alice/44/a.png"
    )
    assert avatar_url(base, "https://cdn.example.com/{size}/b.png", size=90) == "https://cdn.example.com/90/b.png"
    assert avatar_url(base, None) == ""
