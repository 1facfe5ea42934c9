#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Common shared enums/types that must be used by both:
- `common_discourse` (API/data layer)
- `html_fragments/*` renderers

This module MUST NOT import `common_discourse` or any html_fragments modules to avoid cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Type, TypeVar


class Position(str, Enum):
    """Where an optional piece of topic metadata is placed inside a list item."""

    TOP = "top"
    BOTTOM = "bottom"
    NONE = "none"


class TopicSource(str, Enum):
    """Forum listing a topic list is pulled from."""

    LATEST = "latest"
    TOP = "top"


class TopPeriod(str, Enum):
    """Period accepted by the forum's /top/{period}.json listing."""

    ALL = "all"
    YEARLY = "yearly"
    QUARTERLY = "quarterly"
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    DAILY = "daily"


E = TypeVar("E", bound=Enum)
A = TypeVar("A")


def as_bool(value: Any, default: bool = False) -> bool:
    """Normalize shortcode-style booleans ("true"/"false", 1/0, True/False)."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    s = str(value).strip().lower()
    if s in ("true", "1", "yes", "on"):
        return True
    if s in ("false", "0", "no", "off", ""):
        return False
    return default


def as_int(value: Any, default: int) -> int:
    try:
        return max(0, int(value))
    except (ValueError, TypeError):
        return default


def as_enum(enum_cls: Type[E], value: Any, default: E) -> E:
    if isinstance(value, enum_cls):
        return value
    if value is False:
        # "false" for a position means "do not display"
        value = "none"
    s = str(value or "").strip().lower()
    if s == "false":
        s = "none"
    try:
        return enum_cls(s)
    except ValueError:
        return default


def _as_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _build_args(cls: Type[A], options: Optional[Mapping[str, Any]]) -> A:
    """Coerce a loose options mapping into a frozen args dataclass.

    Unknown keys are ignored; each known key is normalized by the type of its default.
    """
    opts = dict(options or {})
    defaults = cls()  # type: ignore[call-arg]
    kwargs = {}
    for f in fields(cls):  # type: ignore[arg-type]
        current = getattr(defaults, f.name)
        if f.name not in opts:
            continue
        raw = opts[f.name]
        if f.name == "id":
            kwargs[f.name] = _as_optional_str(raw)
        elif isinstance(current, Enum):
            kwargs[f.name] = as_enum(type(current), raw, current)
        elif isinstance(current, bool):
            kwargs[f.name] = as_bool(raw, current)
        elif isinstance(current, int):
            kwargs[f.name] = as_int(raw, current)
        else:
            kwargs[f.name] = "" if raw is None else str(raw)
    return cls(**kwargs)  # type: ignore[call-arg]


@dataclass(frozen=True)
class GroupsArgs:
    """Per-call options for the groups fragment."""

    group_list: str = ""
    link_open_text: str = "Join the"
    link_close_text: str = ""
    sso: bool = False
    tile: bool = False
    show_description: bool = True
    show_images: bool = True
    excerpt_length: int = 55
    show_header_metadata: bool = True
    show_join_link: bool = True
    add_button_styles: bool = True
    id: Optional[str] = None

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> "GroupsArgs":
        return _build_args(cls, options)

    def selected_group_names(self) -> Tuple[str, ...]:
        """Names from the comma-separated group_list (trimmed, empties dropped)."""
        return tuple(n.strip() for n in (self.group_list or "").split(",") if n.strip())


@dataclass(frozen=True)
class TopicsArgs:
    """Per-call options for the topic list fragment."""

    source: TopicSource = TopicSource.LATEST
    period: TopPeriod = TopPeriod.DAILY
    category: str = ""
    max_topics: int = 5
    tile: bool = False
    display_avatars: bool = True
    username_position: Position = Position.TOP
    date_position: Position = Position.TOP
    category_position: Position = Position.TOP
    enable_ajax: bool = False
    display_content: bool = True
    id: Optional[str] = None

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> "TopicsArgs":
        return _build_args(cls, options)
