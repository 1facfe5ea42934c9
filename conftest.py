"""
Shared pytest fixtures: forum config, a fake forum behind requests.get, sample payloads.

No test reaches the network; `fake_forum` answers by URL path.
"""

import copy
import sys
import urllib.parse
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

# Set up path for imports (flat layout: common.py, common_types.py at the root)
root_dir = Path(__file__).parent
if str(root_dir) not in sys.path:
    sys.path.insert(0, str(root_dir))

from common import ForumConfig  # noqa: E402

FORUM_URL = "https://forum.example.com"

_INVALID_JSON = object()


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self._payload = payload

    @property
    def text(self) -> str:
        return "<not json>" if self._payload is _INVALID_JSON else str(self._payload)

    def json(self) -> Any:
        if self._payload is _INVALID_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return copy.deepcopy(self._payload)


class FakeForum:
    """Stand-in for requests.get, routed by URL path; records every call."""

    INVALID_JSON = _INVALID_JSON

    def __init__(self):
        self.routes: Dict[str, Any] = {}
        self.calls: List[Dict[str, Any]] = []

    def route(self, path: str, payload: Any = None, *, status: int = 200, error: Optional[Exception] = None) -> None:
        self.routes[path] = error if error is not None else FakeResponse(status, payload)

    def __call__(self, url, headers=None, params=None, timeout=None):
        self.calls.append({"url": url, "headers": dict(headers or {}), "params": params, "timeout": timeout})
        path = urllib.parse.urlparse(url).path
        answer = self.routes.get(path)
        if answer is None:
            return FakeResponse(404, {"errors": ["The requested URL or resource could not be found."]})
        if isinstance(answer, Exception):
            raise answer
        return answer

    def paths(self) -> List[str]:
        return [urllib.parse.urlparse(c["url"]).path for c in self.calls]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


def sample_groups() -> List[Dict[str, Any]]:
    return [
        {
            "name": "dev-team",
            "full_name": None,
            "user_count": 3,
            "flair_url": "https://forum.example.com/images/flair.png",
            "allow_membership_requests": True,
            "bio_raw": "Builders of things. ![logo](https://img.example.com/logo.png) Come say hi.",
            "automatic": False,
        },
        {
            "name": "staff",
            "full_name": "Staff",
            "user_count": 12,
            "allow_membership_requests": False,
            "automatic": True,
        },
        {
            "name": "design_crew",
            "full_name": "Design Crew",
            "user_count": 1,
            "allow_membership_requests": False,
            "bio_raw": "We draw.",
            "automatic": False,
        },
    ]


def sample_topics_response() -> Dict[str, Any]:
    return {
        "users": [
            {"id": 7, "username": "alice", "avatar_template": "/user_avatar/forum.example.com/alice/{size}/a.png"},
            {"id": 8, "username": "bob", "avatar_template": "/user_avatar/forum.example.com/bob/{size}/b.png"},
        ],
        "categories": [{"id": 5, "name": "General", "slug": "general", "color": "0088CC"}],
        "topic_list": {
            "topics": [
                {
                    "id": 10,
                    "slug": "welcome",
                    "title": "Welcome to the forum",
                    "created_at": "2024-01-01T00:00:00.000Z",
                    "pinned_globally": True,
                    "archetype": "regular",
                    "like_count": 40,
                    "posts_count": 1,
                    "posters": [{"user_id": 8, "description": "Original Poster"}],
                },
                {
                    "id": 11,
                    "slug": "hello-world",
                    "title": "Hello world",
                    "created_at": "2024-03-01T23:30:00.000Z",
                    "pinned_globally": False,
                    "archetype": "regular",
                    "like_count": 2,
                    "posts_count": 4,
                    "category_id": 5,
                    "posters": [{"user_id": 7, "description": "Original Poster, Most Recent Poster"}],
                },
                {
                    "id": 12,
                    "slug": "second-topic",
                    "title": "Second topic",
                    "created_at": "2024-03-02T08:00:00.000Z",
                    "pinned_globally": False,
                    "archetype": "regular",
                    "like_count": 0,
                    "posts_count": 1,
                    "posters": [
                        {"user_id": 7, "description": "Frequent Poster"},
                        {"user_id": 8, "description": "Original Poster"},
                    ],
                },
                {
                    "id": 13,
                    "slug": "a-private-message",
                    "title": "A private message",
                    "created_at": "2024-03-02T09:00:00.000Z",
                    "pinned_globally": False,
                    "archetype": "private_message",
                    "like_count": 0,
                    "posts_count": 2,
                    "posters": [{"user_id": 7, "description": "Original Poster"}],
                },
                {
                    "id": 14,
                    "slug": "orphaned",
                    "title": "Orphaned",
                    "created_at": "2024-03-02T10:00:00.000Z",
                    "pinned_globally": False,
                    "archetype": "regular",
                    "like_count": 1,
                    "posts_count": 3,
                    "posters": [{"user_id": -1, "description": "Original Poster"}],
                },
            ]
        },
    }


@pytest.fixture
def forum_config() -> ForumConfig:
    return ForumConfig(url=FORUM_URL + "/", api_key="test-key", api_username="system")


@pytest.fixture
def fake_forum(monkeypatch) -> FakeForum:
    forum = FakeForum()
    monkeypatch.setattr(requests, "get", forum)
    return forum


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def groups_payload() -> Dict[str, Any]:
    return {"groups": sample_groups()}


@pytest.fixture
def topics_response() -> Dict[str, Any]:
    return sample_topics_response()
