"""HTML fragments for forum groups and topic lists.

Entry point: DiscourseEmbeds (one per forum configuration).
"""

from .embeds import DiscourseEmbeds
from .hooks import ExtensionPoint, HookKind, HookRegistry

__all__ = ["DiscourseEmbeds", "ExtensionPoint", "HookKind", "HookRegistry"]
