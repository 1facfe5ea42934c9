"""Links into the forum, optionally routed through its SSO login endpoint."""

from __future__ import annotations

import urllib.parse

from markupsafe import Markup

from common import ForumConfig

from .templating import link


class DiscourseLink:
    def __init__(self, config: ForumConfig):
        self.config = config

    def url_for(self, path: str, *, sso: bool = False) -> str:
        """Absolute forum URL for `path`.

        With SSO enabled site-wide and requested by the caller, the link goes through
        /session/sso so the reader is signed in before landing on `path`.
        """
        if not path.startswith("/"):
            path = "/" + path
        base = self.config.base_url or ""
        if sso and self.config.enable_sso:
            return f"{base}/session/sso?return_path={urllib.parse.quote(path, safe='')}"
        return f"{base}{path}"

    def get_discourse_link(self, link_text: str, path: str, classes: str = "", sso: bool = False) -> Markup:
        return link(text=link_text, url=self.url_for(path, sso=sso), classes=classes)
