"""Plain HTTP transport walking an ordered list of fetch routes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence
from urllib.parse import quote

import requests

from .base import FetchError, FetchFailure, FetchedPage, canonical_final_url

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml"

# Third-party CORS relays; availability varies, so they are opt-in.
PUBLIC_RELAY_ROUTES: tuple[str, ...] = (
    "https://corsproxy.io/?{quoted_url}",
    "https://api.allorigins.win/raw?url={quoted_url}",
    "https://proxy.cors.sh/{url}",
)


@dataclass(frozen=True)
class FetchRoute:
    """URL template for one way of reaching a page.

    ``{url}`` is replaced by the target URL, ``{quoted_url}`` by its
    percent-encoded form. A template that is exactly ``{url}`` is direct.
    """

    template: str

    @property
    def is_direct(self) -> bool:
        return self.template.strip() == "{url}"

    @property
    def name(self) -> str:
        if self.is_direct:
            return "direct"
        return self.template.split("{", 1)[0] or self.template

    def build(self, url: str) -> str:
        return self.template.replace("{quoted_url}", quote(url, safe="")).replace("{url}", url)


def build_routes(templates: Iterable[str]) -> List[FetchRoute]:
    return [FetchRoute(template) for template in templates if template and template.strip()]


def _prepare_session(user_agent: str) -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": user_agent, "Accept": ACCEPT_HEADER})
    return session


class PlainTransport:
    """Returns raw markup from the first route that answers with HTTP success."""

    def __init__(
        self,
        routes: Sequence[FetchRoute],
        *,
        user_agent: str,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not routes:
            raise ValueError("PlainTransport needs at least one route")
        self.routes = list(routes)
        self._timeout = timeout
        self._session = session or _prepare_session(user_agent)

    def fetch(self, url: str) -> FetchedPage:
        failures: list[str] = []
        for route in self.routes:
            target = route.build(url)
            try:
                response = self._session.get(target, timeout=self._timeout, allow_redirects=True)
            except requests.RequestException as exc:
                logger.debug("Route %s failed for %s: %s", route.name, url, exc)
                failures.append(f"{route.name}: {exc.__class__.__name__}")
                continue

            if not response.ok:
                logger.debug("Route %s answered %s for %s", route.name, response.status_code, url)
                failures.append(f"{route.name}: HTTP {response.status_code}")
                continue

            # Relays hide the real redirect chain; only direct routes report it.
            raw_final = str(response.url) if route.is_direct and response.url else url
            return FetchedPage(
                content=response.text,
                final_url=canonical_final_url(raw_final),
                base_url=raw_final,
                route=route.name,
            )

        detail = "; ".join(failures) or "no routes attempted"
        raise FetchError(FetchFailure.ALL_ROUTES_EXHAUSTED, f"All fetch routes failed for {url} ({detail})")

    def close(self) -> None:
        self._session.close()
