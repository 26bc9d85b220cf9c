from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from ..crawl.canonical import URLRejected, canonicalize


class FetchFailure(Enum):
    ALL_ROUTES_EXHAUSTED = "all_routes_exhausted"
    TIMEOUT = "timeout"
    RENDER_FAILED = "render_failed"


class FetchError(RuntimeError):
    """Raised when a URL could not be fetched by any available mechanism."""

    def __init__(self, reason: FetchFailure, message: str) -> None:
        super().__init__(message)
        self.reason = reason


@dataclass(frozen=True)
class FetchedPage:
    """Document returned by a transport.

    ``final_url`` is canonical and used for redirect detection, ``base_url``
    is the raw final URL used to resolve relative links.
    """

    content: str
    final_url: str
    base_url: str
    route: str = "direct"


def canonical_final_url(url: str) -> str:
    """Canonical form of a transport's final URL, or the URL itself if rejected."""

    try:
        return canonicalize(url)
    except URLRejected:
        return url


class Fetcher(Protocol):
    def fetch(self, url: str) -> FetchedPage:
        ...
