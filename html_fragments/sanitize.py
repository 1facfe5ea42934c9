"""
Allow-list HTML sanitizer for rendered fragments.

Modelled on a "post content" policy:
- known presentational tags are kept, unknown tags are unwrapped (their text survives)
- <script>, <style> and friends are removed with their content
- attributes outside the per-tag allow-list are dropped (data-* and on* included)
- href/src must be http(s), mailto or relative
- inline style declarations are filtered to safe CSS properties; the
  SAFE_STYLE_CSS extension point can extend the property list per call
"""

from __future__ import annotations

import logging
import re
import urllib.parse
from typing import Dict, FrozenSet, Iterable, List, Optional

from bs4 import BeautifulSoup
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

from .hooks import ExtensionPoint, HookRegistry

_logger = logging.getLogger(__name__)


class FragmentFormatter(HTMLFormatter):
    """Serialize like the templates do: attributes in source order, <img ...> without "/>",
    and only &, <, > escaped."""

    def attributes(self, tag):
        if tag.attrs is None:
            return []
        return list(tag.attrs.items())


FRAGMENT_FORMATTER = FragmentFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
)

GLOBAL_ATTRS: FrozenSet[str] = frozenset(
    {"class", "id", "style", "title", "role", "dir", "lang", "aria-hidden", "aria-label", "aria-describedby"}
)

ALLOWED_TAGS: Dict[str, FrozenSet[str]] = {
    "a": frozenset({"href", "rel", "rev", "name", "target"}),
    "abbr": frozenset(),
    "article": frozenset(),
    "aside": frozenset(),
    "b": frozenset(),
    "blockquote": frozenset({"cite"}),
    "br": frozenset(),
    "code": frozenset(),
    "del": frozenset({"datetime"}),
    "details": frozenset({"open"}),
    "div": frozenset({"align"}),
    "em": frozenset(),
    "figcaption": frozenset(),
    "figure": frozenset(),
    "footer": frozenset(),
    "h1": frozenset({"align"}),
    "h2": frozenset({"align"}),
    "h3": frozenset({"align"}),
    "h4": frozenset({"align"}),
    "h5": frozenset({"align"}),
    "h6": frozenset({"align"}),
    "header": frozenset(),
    "hr": frozenset(),
    "i": frozenset(),
    "img": frozenset({"alt", "src", "srcset", "width", "height", "loading"}),
    "li": frozenset({"value"}),
    "ol": frozenset({"start", "reversed"}),
    "p": frozenset({"align"}),
    "pre": frozenset(),
    "section": frozenset(),
    "small": frozenset(),
    "span": frozenset(),
    "strong": frozenset(),
    "sub": frozenset(),
    "summary": frozenset(),
    "sup": frozenset(),
    "table": frozenset({"border", "cellpadding", "cellspacing"}),
    "tbody": frozenset(),
    "td": frozenset({"colspan", "rowspan"}),
    "th": frozenset({"colspan", "rowspan", "scope"}),
    "thead": frozenset(),
    "time": frozenset({"datetime"}),
    "tr": frozenset(),
    "u": frozenset(),
    "ul": frozenset(),
}

# Removed together with their content.
DROPPED_TAGS: FrozenSet[str] = frozenset({"script", "style", "iframe", "object", "embed", "noscript", "template"})

URL_ATTRS: FrozenSet[str] = frozenset({"href", "src", "cite"})
SAFE_URL_SCHEMES: FrozenSet[str] = frozenset({"", "http", "https", "mailto"})

DEFAULT_SAFE_STYLES: List[str] = [
    "background",
    "background-color",
    "border",
    "border-bottom",
    "border-color",
    "border-left",
    "border-radius",
    "border-right",
    "border-style",
    "border-top",
    "border-width",
    "clear",
    "color",
    "float",
    "font",
    "font-family",
    "font-size",
    "font-style",
    "font-weight",
    "height",
    "line-height",
    "list-style-type",
    "margin",
    "margin-bottom",
    "margin-left",
    "margin-right",
    "margin-top",
    "max-width",
    "min-height",
    "overflow",
    "padding",
    "padding-bottom",
    "padding-left",
    "padding-right",
    "padding-top",
    "text-align",
    "text-decoration",
    "vertical-align",
    "width",
]

_UNSAFE_STYLE_VALUE_RE = re.compile(r"(url\s*\(|expression\s*\(|javascript:|[\\<>])", re.IGNORECASE)


def filter_style(style: str, safe_properties: Iterable[str]) -> str:
    """Keep only `prop: value` declarations whose property is allowed."""
    allowed = {p.strip().lower() for p in safe_properties}
    kept: List[str] = []
    for decl in str(style or "").split(";"):
        if ":" not in decl:
            continue
        prop, _, value = decl.partition(":")
        prop = prop.strip().lower()
        value = value.strip()
        if not prop or not value or prop not in allowed:
            continue
        if _UNSAFE_STYLE_VALUE_RE.search(value):
            continue
        kept.append(f"{prop}: {value};")
    return " ".join(kept)


def is_safe_url(url: str) -> bool:
    u = str(url or "").strip()
    # Browsers ignore control characters/whitespace inside schemes ("java\tscript:").
    compact = re.sub(r"[\x00-\x20]", "", u)
    try:
        scheme = urllib.parse.urlparse(compact).scheme.lower()
    except ValueError:
        return False
    return scheme in SAFE_URL_SCHEMES


class HtmlSanitizer:
    """Sanitize fragment HTML against the allow-list.

    The style property list is resolved through the SAFE_STYLE_CSS extension point on
    every call, so a temporarily registered filter affects only the calls it brackets.
    """

    def __init__(self, hooks: Optional[HookRegistry] = None):
        self.hooks = hooks

    def safe_styles(self) -> List[str]:
        styles = list(DEFAULT_SAFE_STYLES)
        if self.hooks is not None:
            styles = list(self.hooks.apply(ExtensionPoint.SAFE_STYLE_CSS, styles) or [])
        return styles

    def sanitize(self, html: str) -> str:
        if not html:
            return ""
        safe_styles = self.safe_styles()
        soup = BeautifulSoup(str(html), "html.parser")

        for tag in list(soup.find_all(True)):
            if tag.decomposed:
                continue
            name = str(tag.name or "").lower()
            if name in DROPPED_TAGS:
                tag.decompose()
                continue
            allowed_attrs = ALLOWED_TAGS.get(name)
            if allowed_attrs is None:
                tag.unwrap()
                continue

            for attr in list(tag.attrs):
                a = str(attr).lower()
                if a not in allowed_attrs and a not in GLOBAL_ATTRS:
                    del tag[attr]
                elif a in URL_ATTRS and not is_safe_url(tag.get(attr) or ""):
                    _logger.debug("Sanitizer dropped %s=%r on <%s>", a, tag.get(attr), name)
                    del tag[attr]
                elif a == "style":
                    style = filter_style(tag.get(attr) or "", safe_styles)
                    if style:
                        tag[attr] = style
                    else:
                        del tag[attr]

        return soup.decode(formatter=FRAGMENT_FORMATTER)
