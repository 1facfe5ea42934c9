# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Discourse API client and error taxonomy for discourse-embeds.

Endpoints used (all GET, JSON):
- /groups.json            groups (filtered to non-automatic groups by the caller)
- /latest.json            latest topic listing
- /top/{period}.json      top topics for a period
- /c/{category}.json      topics of one category
- /site.json              category list (badge lookup)
- /t/{id}.json            single topic (first post "cooked" HTML)

A single attempt is made per call; retries are a caller policy (none implemented).
"""

# Standard library imports
import logging
import threading
import time
import urllib.parse
from typing import Any, Dict, List, Optional

# Third-party imports
import requests

# Local imports
from common import ForumConfig

# Module logger
_logger = logging.getLogger(__name__)


# ======================================================================================
# ERRORS
# ======================================================================================

class DiscourseError(Exception):
    """Base class for every failure the pipelines degrade to empty output."""


class ConfigurationError(DiscourseError):
    """Forum URL or API credentials are missing."""


class NetworkError(DiscourseError):
    """The transport failed or the forum answered with a non-2xx status."""

    def __init__(self, message: str, *, status: Optional[int] = None, url: str = ""):
        super().__init__(message)
        self.status = status
        self.url = url


class ParseError(DiscourseError):
    """The forum answered 2xx but the body is not the JSON object we expect."""


class EmptyResult(DiscourseError):
    """Filtering left nothing to render."""


# ======================================================================================
# API STATISTICS
# ======================================================================================

class _DiscourseAPIStats:
    """Per-client REST call and cache statistics (for CLI/debug output)."""

    def __init__(self):
        self._mu = threading.Lock()
        self.reset()

    def reset(self):
        """Reset all statistics."""
        # REST call stats
        self.rest_calls_total = 0
        self.rest_calls_by_label: Dict[str, int] = {}
        self.rest_success_total = 0
        self.rest_time_total_s = 0.0

        # Error stats
        self.rest_errors_total = 0
        self.rest_errors_by_status: Dict[int, int] = {}
        self.rest_last_error: Dict[str, Any] = {}

        # Cache stats (by cache name)
        self.cache_hits: Dict[str, int] = {}
        self.cache_misses: Dict[str, int] = {}
        self.cache_writes: Dict[str, int] = {}

        # Actual API call log (ordered): {"seq": 1, "text": "REST GET https://... # groups"}
        self._api_call_log: List[Dict[str, Any]] = []

    def log_actual_api_call(self, text: str) -> None:
        """Append an ordered, human-readable API call record."""
        t = str(text or "").strip()
        if not t:
            return
        with self._mu:
            self._api_call_log.append({"seq": len(self._api_call_log) + 1, "text": t})

    def get_actual_api_call_log(self) -> List[Dict[str, Any]]:
        """Return a copy of ordered API call records."""
        with self._mu:
            return list(self._api_call_log)

    def bump(self, counter: Dict[Any, int], key: Any, n: int = 1) -> None:
        with self._mu:
            counter[key] = int(counter.get(key, 0)) + int(n)


# ======================================================================================
# CLIENT
# ======================================================================================

class DiscourseAPIClient:
    """Discourse API client.

    Features:
    - Api-Key / Api-Username header authentication (or anonymous requests)
    - HTTP-level validation with a small error taxonomy
    - Per-client REST and cache statistics

    Example:
        client = DiscourseAPIClient(load_forum_config(Path("forum.yaml")))
        groups = client.get("/groups.json")["groups"]
    """

    def __init__(self, config: ForumConfig, *, debug_rest: bool = False):
        self.config = config
        self.headers = {"Accept": "application/json"}
        self.logger = logging.getLogger(self.__class__.__name__)
        self._debug_rest = bool(debug_rest)
        self.stats = _DiscourseAPIStats()

    @property
    def base_url(self) -> Optional[str]:
        return self.config.base_url

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Api-Key": str(self.config.api_key),
            "Api-Username": str(self.config.api_username),
        }

    def _rest_label_for_url(self, url: str) -> str:
        """Coarse label for a REST request URL (keeps ids/slugs from exploding cardinality)."""
        try:
            path = urllib.parse.urlparse(str(url or "")).path or ""
        except ValueError:
            path = ""
        parts = [p for p in path.split("/") if p]
        if not parts:
            return "unknown"
        if parts[0] == "t":
            return "topic"
        if parts[0] == "c":
            return "category_topics"
        if parts[0] == "top":
            return "top_topics"
        return parts[0].rsplit(".json", 1)[0] or "unknown"

    def _cache_hit(self, name: str) -> None:
        self.stats.bump(self.stats.cache_hits, str(name or "").strip() or "unknown")

    def _cache_miss(self, name: str) -> None:
        self.stats.bump(self.stats.cache_misses, str(name or "").strip() or "unknown")

    def _cache_write(self, name: str) -> None:
        self.stats.bump(self.stats.cache_writes, str(name or "").strip() or "unknown")

    def get_cache_stats(self) -> Dict[str, Any]:
        """Return per-run cache hit/miss/write stats."""
        hits = dict(self.stats.cache_hits)
        misses = dict(self.stats.cache_misses)
        return {
            "hits_total": sum(hits.values()),
            "misses_total": sum(misses.values()),
            "hits": hits,
            "misses": misses,
            "writes": dict(self.stats.cache_writes),
        }

    def get_rest_call_stats(self) -> Dict[str, Any]:
        """Return per-run REST call stats for debugging."""
        return {
            "total": int(self.stats.rest_calls_total),
            "success_total": int(self.stats.rest_success_total),
            "errors_total": int(self.stats.rest_errors_total),
            "by_label": dict(sorted(self.stats.rest_calls_by_label.items())),
            "errors_by_status": dict(self.stats.rest_errors_by_status),
            "time_total_s": round(float(self.stats.rest_time_total_s), 3),
            "last_error": dict(self.stats.rest_last_error),
        }

    def _rest_get(self, url: str, *, headers: Dict[str, str], params: Optional[Dict[str, Any]] = None):
        """requests.get wrapper that records per-run counters."""
        label = self._rest_label_for_url(url)
        self.stats.rest_calls_total += 1
        self.stats.bump(self.stats.rest_calls_by_label, label)
        self.stats.log_actual_api_call(f"REST GET {url}  # {label}")
        if self._debug_rest:
            self.logger.debug("Discourse REST GET [%s] %s", label, url)

        t0_req = time.monotonic()
        try:
            resp = requests.get(url, headers=headers, params=params, timeout=self.config.request_timeout_s)
        finally:
            self.stats.rest_time_total_s += max(0.0, time.monotonic() - t0_req)

        code = int(resp.status_code or 0)
        if 200 <= code < 300:
            self.stats.rest_success_total += 1
        else:
            self.stats.rest_errors_total += 1
            self.stats.bump(self.stats.rest_errors_by_status, code)
            body = ""
            try:
                body = (resp.text or "")[:300]
            except (ValueError, TypeError):
                body = ""
            self.stats.rest_last_error = {"status": code, "url": url, "label": label, "body": body}
        if self._debug_rest:
            self.logger.debug("Discourse REST RESP [%s] status=%s", label, code)
        return resp

    def get(self, path: str, *, authenticated: bool = True, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a JSON endpoint under the configured forum URL.

        Args:
            path: Absolute path such as "/groups.json" (a missing leading "/" is added)
            authenticated: Send Api-Key/Api-Username headers (requires both to be configured)
            params: Query parameters

        Returns:
            The decoded JSON object.

        Raises:
            ConfigurationError: forum URL (or credentials, when authenticated) missing
            NetworkError: transport failure or non-2xx status
            ParseError: body is not a JSON object
        """
        base_url = self.base_url
        if not base_url:
            raise ConfigurationError("Discourse URL is not configured")
        if authenticated and not self.config.has_credentials():
            raise ConfigurationError("Discourse API key and API username are required for this request")

        endpoint = path if str(path).startswith("/") else f"/{path}"
        url = f"{base_url}{endpoint}"
        headers = dict(self.headers)
        if authenticated:
            headers.update(self._auth_headers())

        try:
            response = self._rest_get(url, headers=headers, params=params)
        except requests.exceptions.RequestException as e:
            self.stats.rest_errors_total += 1
            self.stats.rest_last_error = {"status": None, "url": url, "body": str(e)[:300]}
            raise NetworkError(f"Discourse API request failed for {endpoint}: {e}", url=url) from e

        code = int(response.status_code or 0)
        if not 200 <= code < 300:
            raise NetworkError(f"Discourse API returned HTTP {code} for {endpoint}", status=code, url=url)

        try:
            body = response.json()
        except ValueError as e:
            raise ParseError(f"Discourse API returned invalid JSON for {endpoint}: {e}") from e
        if not isinstance(body, dict):
            raise ParseError(f"Discourse API returned {type(body).__name__} for {endpoint}, expected an object")
        return body

    def has_credentials(self) -> bool:
        """Check if URL, API key and API username are all configured."""
        return self.config.has_credentials()
