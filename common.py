"""
Discourse embeds package.

Shared constants, cache location policy and forum configuration loading.
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from common_types import as_bool

# Global logger for the module
_logger = logging.getLogger(__name__)

#
# Cache policy constants (single source of truth)
#
DAY_IN_SECONDS: int = 24 * 3600
DEFAULT_GROUPS_TTL_S: int = DAY_IN_SECONDS
# ^ TTL (seconds) for both the raw groups list and the rendered groups fragment.
DEFAULT_TOPICS_TTL_S: int = DAY_IN_SECONDS
# ^ TTL (seconds) for the raw topic listing and the rendered topic list.
DEFAULT_CATEGORIES_TTL_S: int = DAY_IN_SECONDS
# ^ TTL (seconds) for the forum category list used to resolve topic badges.
AVATAR_SIZE_PX: int = 44
# ^ Avatar size substituted into the forum's "{size}" avatar template.


# ======================================================================================
# IMPORTANT: Cache location policy (discourse-embeds)
#
# All *persistent* caches MUST live under:
#   - $DISCOURSE_EMBEDS_CACHE_DIR   (explicit override), else
#   - ~/.cache/discourse-embeds     (default)
# ======================================================================================

def discourse_embeds_cache_dir() -> Path:
    """Return the cache directory for discourse-embeds.

    Resolution order:
    - DISCOURSE_EMBEDS_CACHE_DIR (explicit override)
    - ~/.cache/discourse-embeds
    """
    override = os.environ.get("DISCOURSE_EMBEDS_CACHE_DIR")
    if override:
        return Path(override).expanduser()

    return Path.home() / ".cache" / "discourse-embeds"


def resolve_cache_path(cache_file: str) -> Path:
    """Resolve a cache file path into the global cache directory.

    - Absolute paths are used as-is.
    - Relative paths are rooted under `discourse_embeds_cache_dir()`.
    - A leading ".cache/" is stripped so ".cache/foo.json" lands in <cache dir>/foo.json.
    """
    p = Path(cache_file).expanduser()
    if p.is_absolute():
        return p

    # Normalize any leading "./"
    rel = Path(*p.parts[1:]) if p.parts[:1] == (".",) else p

    # Strip leading ".cache/" if present
    if rel.parts[:1] == (".cache",):
        rel = Path(*rel.parts[1:])

    return discourse_embeds_cache_dir() / rel


@dataclass(frozen=True)
class ForumConfig:
    """Forum connection and site-wide display settings.

    Built once (see load_forum_config) and passed explicitly into the client and
    every pipeline; nothing reads options from module globals.
    """

    url: Optional[str] = None
    api_key: Optional[str] = None
    api_username: Optional[str] = None
    enable_sso: bool = False
    ajax_refresh: bool = False
    topic_content: bool = True
    display_private_topics: bool = False
    datetime_format: str = "%Y/%m/%d"
    timezone: str = "UTC"
    dev_mode: bool = False
    # None -> memory-only caches
    cache_dir: Optional[Path] = None
    request_timeout_s: Optional[float] = None
    groups_ttl_s: int = DEFAULT_GROUPS_TTL_S
    topics_ttl_s: int = DEFAULT_TOPICS_TTL_S
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def base_url(self) -> Optional[str]:
        """Forum URL without a trailing slash, or None when unconfigured."""
        u = str(self.url or "").strip().rstrip("/")
        return u or None

    def has_credentials(self) -> bool:
        return bool(self.base_url and self.api_key and self.api_username)

    def cache_file(self, name: str) -> Optional[Path]:
        """Path for a named cache file, or None for memory-only caches."""
        if self.cache_dir is None:
            return None
        return Path(self.cache_dir).expanduser() / name


_BOOL_KEYS = ("enable_sso", "ajax_refresh", "topic_content", "display_private_topics", "dev_mode")
_INT_KEYS = ("groups_ttl_s", "topics_ttl_s")

# Environment overrides (env wins over the YAML file).
_ENV_OVERRIDES = {
    "DISCOURSE_URL": "url",
    "DISCOURSE_API_KEY": "api_key",
    "DISCOURSE_API_USERNAME": "api_username",
    "DISCOURSE_EMBEDS_DEV_MODE": "dev_mode",
}


def forum_config_from_dict(data: Mapping[str, Any]) -> ForumConfig:
    """Build a ForumConfig from a plain mapping (YAML document, test fixture).

    Dashed keys ("api-key") are accepted as aliases of the underscored names.
    Unknown keys are kept in `extra` so callers can read site-specific settings.
    """
    known = {f.name for f in fields(ForumConfig)}
    kwargs: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for raw_key, value in dict(data or {}).items():
        key = str(raw_key).strip().replace("-", "_")
        if key not in known or key == "extra":
            extra[str(raw_key)] = value
            continue
        if value is None:
            continue
        if key in _BOOL_KEYS:
            kwargs[key] = as_bool(value)
        elif key in _INT_KEYS:
            try:
                kwargs[key] = max(0, int(value))
            except (ValueError, TypeError):
                _logger.warning("Ignoring invalid %s=%r in forum config", key, value)
        elif key == "request_timeout_s":
            try:
                kwargs[key] = float(value)
            except (ValueError, TypeError):
                _logger.warning("Ignoring invalid request_timeout_s=%r in forum config", value)
        elif key == "cache_dir":
            kwargs[key] = resolve_cache_path(str(value))
        else:
            kwargs[key] = str(value)
    return ForumConfig(extra=extra, **kwargs)


def load_forum_config(
    path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> ForumConfig:
    """Load forum settings from a YAML file, then apply environment overrides.

    Args:
        path: YAML file (optional). A missing file is an error; an empty file is {}.
        environ: Environment mapping (defaults to os.environ).

    Example YAML:
        url: https://forum.example.com
        api_key: 0123abcd
        api_username: system
        ajax_refresh: true
        datetime_format: "%d %b %Y"
        timezone: Europe/Berlin
        cache_dir: ~/.cache/discourse-embeds
    """
    data: Dict[str, Any] = {}
    if path is not None:
        with open(Path(path).expanduser(), "r") as f:
            loaded = yaml.safe_load(f)
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError(f"Forum config {path} must be a YAML mapping, got {type(loaded).__name__}")
        data = dict(loaded or {})

    config = forum_config_from_dict(data)

    env = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    for env_name, key in _ENV_OVERRIDES.items():
        val = env.get(env_name)
        if val is None or not str(val).strip():
            continue
        overrides[key] = as_bool(val) if key in _BOOL_KEYS else str(val).strip()
    if overrides:
        _logger.debug("Forum config env overrides: %s", sorted(overrides))
        config = replace(config, **overrides)
    return config


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to `path` via a temp file in the same directory and os.replace().

    Readers (e.g. a web server) never observe a partially-written page.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(f".{p.name}.tmp.{os.getpid()}")
    tmp.write_text(content, encoding=encoding)
    os.replace(str(tmp), str(p))
