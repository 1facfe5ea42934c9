"""
Jinja2 environment and a small builder for segment-by-segment fragment output.

Fragments are not rendered in one template pass: extension points need to see (and may
replace) the markup accumulated so far, so the renderers call single-line macros from
`templates/*.j2` and concatenate their output.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
from markupsafe import Markup

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"


@lru_cache(maxsize=1)
def template_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "j2"]),
        undefined=StrictUndefined,
    )


def macros(template_name: str) -> Any:
    """Exported macros of a template (attribute access: `macros("groups.j2").group_open()`)."""
    return template_env().get_template(template_name).module


def link(text: str, url: str, classes: str) -> Markup:
    return macros("common.j2").link(text=text, url=url, classes=classes)


class FragmentBuilder:
    """Accumulates macro output; `markup` may be replaced by extension point callbacks."""

    def __init__(self, template_name: str):
        self._macros = macros(template_name)
        self.markup = ""

    def emit(self, macro_name: str, **kwargs: Any) -> "FragmentBuilder":
        self.markup += str(getattr(self._macros, macro_name)(**kwargs))
        return self
