"""Chooses between the plain and the render-capable transport per URL."""

from __future__ import annotations

import logging
import re
from typing import Optional

from ..core.config import CrawlerConfig
from .base import FetchError, FetchedPage, Fetcher
from .plain import PlainTransport, build_routes
from .render import RenderTransport

logger = logging.getLogger(__name__)

SCRIPT_TAG = re.compile(r"<script\b", re.IGNORECASE)
FRAMEWORK_SIGNATURE = re.compile(r"react|vue|angular", re.IGNORECASE)


def looks_like_script_app(html: str) -> bool:
    """Heuristic: a script tag plus a front-end framework name in the markup."""

    if not html:
        return False
    return bool(SCRIPT_TAG.search(html) and FRAMEWORK_SIGNATURE.search(html))


class FetchStrategy:
    """Fetches one URL, rendering it only when the markup suggests an SPA."""

    def __init__(self, plain: Fetcher, render: Optional[Fetcher] = None) -> None:
        self.plain = plain
        self.render = render

    @classmethod
    def from_config(cls, config: CrawlerConfig) -> "FetchStrategy":
        plain = PlainTransport(
            build_routes(config.fetch_routes),
            user_agent=config.user_agent,
            timeout=config.request_timeout,
        )
        render = None
        if config.use_rendering_transport:
            render = RenderTransport(
                timeout_ms=config.render_timeout_ms,
                headless=config.headless,
                user_agent=config.user_agent,
            )
        return cls(plain, render)

    def fetch(self, url: str) -> FetchedPage:
        if self.render is None:
            return self.plain.fetch(url)

        # a failed classification fetch is the page's failure
        probe = self.plain.fetch(url)
        if looks_like_script_app(probe.content):
            logger.debug("Rendering %s (script application markup)", url)
            return self.render.fetch(url)
        return probe

    def needs_rendering(self, url: str) -> bool:
        probe = self._probe(url)
        return probe is not None and looks_like_script_app(probe.content)

    def _probe(self, url: str) -> Optional[FetchedPage]:
        try:
            return self.plain.fetch(url)
        except FetchError as exc:
            logger.debug("Classification fetch failed for %s: %s", url, exc)
            return None

    def close(self) -> None:
        close = getattr(self.plain, "close", None)
        if callable(close):
            close()
