"""
Shared formatting helpers for the groups and topic list fragments.

All functions here are pure (no I/O) so the same input always yields the same output.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from bs4 import BeautifulSoup
from markupsafe import Markup

from common import AVATAR_SIZE_PX

ELLIPSIS = "…"

# ![alt](url "title")
MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+[\"'][^)]*[\"'])?\s*\)")
# [text](url)
MARKDOWN_LINK_RE = re.compile(r"\[([^\]]*)\]\([^)]*\)")
# **bold**, __bold__, *em*, _em_ (whole words only, so snake__case and 2 * 3 survive)
MARKDOWN_EMPHASIS_RE = re.compile(r"(?<![\w*])(\*\*|__|\*|_)(?=\S)(.+?)(?<=\S)\1(?![\w*])")
# `code`
MARKDOWN_CODE_RE = re.compile(r"`([^`]*)`")
# leading "#" headings and "> " quotes
MARKDOWN_LINE_PREFIX_RE = re.compile(r"^\s{0,3}(#{1,6}\s+|>\s?)", re.MULTILINE)
WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Excerpt:
    description: str
    images: Tuple[str, ...] = ()

    @property
    def image(self) -> Optional[str]:
        return self.images[0] if self.images else None


def _truncate_words(text: str, max_length: int) -> str:
    if max_length <= 0:
        return ""
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    # Cut at a word boundary unless the limit falls exactly between words.
    if not text[max_length].isspace():
        head, sep, _tail = cut.rpartition(" ")
        if sep and head.strip():
            cut = head
    return cut.rstrip(" ,;:.-") + ELLIPSIS


def extract_excerpt(rich_text: Optional[str], max_length: int) -> Excerpt:
    """Split rich biography text into a plain-text excerpt and the image URLs it contains.

    Markdown images and <img> tags are pulled out in document order; markdown links
    keep their text; remaining markup is dropped and whitespace collapsed. The text is
    truncated to `max_length` characters at a word boundary with a trailing ellipsis.
    """
    text = str(rich_text or "")
    if not text.strip():
        return Excerpt(description="")

    # Markdown images become <img> tags so one parser pass sees every image in order.
    text = MARKDOWN_IMAGE_RE.sub(lambda m: f'<img src="{html.escape(m.group(1), quote=True)}">', text)
    text = MARKDOWN_LINK_RE.sub(lambda m: m.group(1), text)

    soup = BeautifulSoup(text, "html.parser")
    images: List[str] = []
    for img in soup.find_all("img"):
        src = str(img.get("src") or "").strip()
        if src:
            images.append(src)
        img.decompose()

    plain = soup.get_text(" ")
    plain = MARKDOWN_LINE_PREFIX_RE.sub("", plain)
    plain = MARKDOWN_CODE_RE.sub(r"\1", plain)
    plain = MARKDOWN_EMPHASIS_RE.sub(r"\2", plain)
    plain = WHITESPACE_RE.sub(" ", plain).strip()

    return Excerpt(description=_truncate_words(plain, int(max_length)), images=tuple(images))


def pluralize_count(n: Any) -> str:
    """'1 member' for exactly one, otherwise '<n> members'."""
    try:
        count = int(n)
    except (ValueError, TypeError):
        return f"{n} members"
    return "1 member" if count == 1 else f"{count} members"


def find_category(topic: Dict[str, Any], categories: Optional[Iterable[Any]]) -> Optional[Dict[str, Any]]:
    """Category dict whose id matches topic["category_id"], or None."""
    category_id = topic.get("category_id")
    if category_id is None:
        return None
    for category in categories or []:
        if isinstance(category, dict) and category.get("id") == category_id:
            return category
    return None


def category_badge_html(category: Optional[Dict[str, Any]]) -> Optional[Markup]:
    """Colored square + category name, or None when there is no category."""
    if not category:
        return None
    name = str(category.get("name") or "")
    color = re.sub(r"[^0-9a-fA-F]", "", str(category.get("color") or ""))[:6]
    style = f"background-color: #{color};" if color else ""
    return Markup(
        '<span class="wpds-category-icon" style="{style}"></span><span class="wpds-category-name">{name}</span>'
    ).format(style=style, name=name)


def format_created_at(created_at: Optional[str], *, date_format: str, tz_name: str = "UTC") -> str:
    """Render a UTC ISO-8601 timestamp in the site timezone ("" when unparseable)."""
    s = str(created_at or "").strip()
    if not s:
        return ""
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return ""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        tz = ZoneInfo(tz_name or "UTC")
    except (ValueError, KeyError):
        tz = ZoneInfo("UTC")
    return dt.astimezone(tz).strftime(date_format)


def avatar_url(base_url: str, avatar_template: Optional[str], size: int = AVATAR_SIZE_PX) -> str:
    """Absolute avatar URL from the forum's '/.../{size}/...' template."""
    template = str(avatar_template or "")
    if not template:
        return ""
    path = template.replace("{size}", str(int(size)))
    if path.startswith(("http://", "https://", "//")):
        return path
    return f"{base_url}{path}"
