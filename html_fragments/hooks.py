"""
Named extension points for the rendered fragments.

Two contracts:
- FILTER: callbacks receive (value, obj, context, args) and return the replacement value.
  Returning the value unchanged passes it through; returning something else overrides it.
- ACTION: observers receive the same arguments; return values are ignored.

Callbacks run in registration order.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

_logger = logging.getLogger(__name__)

HookCallback = Callable[[Any, Any, Mapping[str, Any], Any], Any]


class HookKind(str, Enum):
    FILTER = "filter"
    ACTION = "action"


class ExtensionPoint(Enum):
    """Every hook the renderers fire, with its contract."""

    # Groups (per card, then once for the whole fragment)
    GROUP_ABOVE_HEADER = ("wpds_group_above_header", HookKind.FILTER)
    GROUP_ABOVE_FOOTER = ("wpds_group_above_footer", HookKind.FILTER)
    GROUP_BELOW_FOOTER = ("wpds_group_below_footer", HookKind.FILTER)
    FORMATTED_GROUPS = ("wpds_formatted_groups", HookKind.FILTER)

    # Topic list
    BEFORE_TOPICLIST = ("wpds_before_topiclist", HookKind.ACTION)
    USE_PLUGIN_TOPICLIST_FORMATTING = ("wpds_use_plugin_topiclist_formatting", HookKind.FILTER)
    TOPICLIST_ABOVE_HEADER = ("wpds_topiclist_above_header", HookKind.FILTER)
    TOPICLIST_ABOVE_FOOTER = ("wpds_topiclist_above_footer", HookKind.FILTER)
    TOPICLIST_AVATAR = ("wpds_topiclist_avatar", HookKind.FILTER)
    TOPICLIST_BELOW_FOOTER = ("wpds_topiclist_below_footer", HookKind.FILTER)
    AFTER_TOPICLIST_FORMATTING = ("wpds_after_topiclist_formatting", HookKind.FILTER)

    # Sanitizer
    SAFE_STYLE_CSS = ("safe_style_css", HookKind.FILTER)

    def __init__(self, hook_name: str, kind: HookKind):
        self.hook_name = hook_name
        self.kind = kind


class HookRegistry:
    """Typed registry of extension point callbacks.

    Example:
        hooks = HookRegistry()
        hooks.register(ExtensionPoint.GROUP_ABOVE_FOOTER,
                       lambda markup, group, ctx, args: markup + "<p>Staff only</p>")
    """

    def __init__(self):
        self._mu = Lock()
        self._callbacks: Dict[ExtensionPoint, List[HookCallback]] = {}

    def register(self, point: ExtensionPoint, callback: HookCallback) -> None:
        if not callable(callback):
            raise TypeError(f"Callback for {point.hook_name} is not callable: {callback!r}")
        with self._mu:
            self._callbacks.setdefault(point, []).append(callback)

    def unregister(self, point: ExtensionPoint, callback: HookCallback) -> bool:
        """Remove the first registration of `callback`. Returns False if it was not registered."""
        with self._mu:
            cbs = self._callbacks.get(point) or []
            try:
                cbs.remove(callback)
            except ValueError:
                return False
            return True

    def callbacks(self, point: ExtensionPoint) -> List[HookCallback]:
        with self._mu:
            return list(self._callbacks.get(point) or [])

    def has_callbacks(self, point: ExtensionPoint) -> bool:
        return bool(self.callbacks(point))

    @contextmanager
    def registered(self, point: ExtensionPoint, callback: HookCallback) -> Iterator[None]:
        """Register `callback` for the duration of a with-block (removed even on error)."""
        self.register(point, callback)
        try:
            yield
        finally:
            self.unregister(point, callback)

    def apply(
        self,
        point: ExtensionPoint,
        value: Any,
        obj: Any = None,
        context: Optional[Mapping[str, Any]] = None,
        args: Any = None,
    ) -> Any:
        """Run FILTER callbacks in order, threading the value through each one."""
        if point.kind is not HookKind.FILTER:
            raise ValueError(f"{point.hook_name} is an action; use notify()")
        ctx = dict(context or {})
        for cb in self.callbacks(point):
            value = cb(value, obj, ctx, args)
        return value

    def notify(
        self,
        point: ExtensionPoint,
        value: Any = None,
        obj: Any = None,
        context: Optional[Mapping[str, Any]] = None,
        args: Any = None,
    ) -> None:
        """Run ACTION callbacks in order; their return values are ignored."""
        if point.kind is not HookKind.ACTION:
            raise ValueError(f"{point.hook_name} is a filter; use apply()")
        ctx = dict(context or {})
        for cb in self.callbacks(point):
            cb(value, obj, ctx, args)
        _logger.debug("Fired %s (%d observers)", point.hook_name, len(self.callbacks(point)))
