"""Fetch transports and the strategy that chooses between them."""

from .base import FetchError, FetchFailure, FetchedPage, Fetcher
from .plain import PUBLIC_RELAY_ROUTES, FetchRoute, PlainTransport
from .render import RenderTransport
from .strategy import FetchStrategy, looks_like_script_app

__all__ = [
    "FetchError",
    "FetchFailure",
    "FetchRoute",
    "FetchStrategy",
    "FetchedPage",
    "Fetcher",
    "PUBLIC_RELAY_ROUTES",
    "PlainTransport",
    "RenderTransport",
    "looks_like_script_app",
]
