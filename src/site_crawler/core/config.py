"""Configuration loading and validation utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SiteCrawler/1.0)"
DIRECT_ROUTE = "{url}"
URL_PLACEHOLDERS = ("{url}", "{quoted_url}")

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigurationError(ValueError):
    """Raised when a run configuration cannot be used."""


@dataclass(slots=True)
class CrawlerConfig:
    """Holds runtime options for a crawl run."""

    max_pages: int = 500
    delay_ms: int = 200
    use_rendering_transport: bool = False
    workers: int = 1
    request_timeout: float = 15.0
    render_timeout_ms: int = 10_000
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    fetch_routes: Tuple[str, ...] = (DIRECT_ROUTE,)
    report_path: Optional[Path] = None

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000

    def validate(self) -> None:
        if isinstance(self.max_pages, bool) or not isinstance(self.max_pages, int) or self.max_pages < 1:
            raise ConfigurationError(f"max_pages must be a positive integer, got {self.max_pages!r}")
        if isinstance(self.delay_ms, bool) or not isinstance(self.delay_ms, int) or self.delay_ms < 0:
            raise ConfigurationError(f"delay_ms must be a non-negative integer, got {self.delay_ms!r}")
        if not isinstance(self.workers, int) or self.workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {self.workers!r}")
        if self.request_timeout <= 0 or self.render_timeout_ms <= 0:
            raise ConfigurationError("timeouts must be positive")
        if not self.fetch_routes:
            raise ConfigurationError("at least one fetch route is required")
        for route in self.fetch_routes:
            if not any(placeholder in route for placeholder in URL_PLACEHOLDERS):
                raise ConfigurationError(f"fetch route {route!r} has no URL placeholder")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _env_routes(name: str) -> Optional[Tuple[str, ...]]:
    raw = os.getenv(name)
    if not raw:
        return None
    routes = tuple(part.strip() for part in raw.split(",") if part.strip())
    return routes or None


def load_configuration(
    *,
    max_pages: Optional[int] = None,
    delay_ms: Optional[int] = None,
    use_rendering_transport: Optional[bool] = None,
    workers: Optional[int] = None,
    fetch_routes: Optional[Tuple[str, ...]] = None,
    report_name: Optional[str] = None,
) -> CrawlerConfig:
    """Builds a ``CrawlerConfig`` from CLI input and environment variables.

    Explicit arguments win over the environment; ``None`` means "not given".
    """

    load_dotenv()  # Loads .env values if present

    report_value = report_name or os.getenv("CRAWLER_REPORT") or None

    config = CrawlerConfig(
        max_pages=max_pages if max_pages is not None else _env_int("CRAWLER_MAX_PAGES", 500),
        delay_ms=delay_ms if delay_ms is not None else _env_int("CRAWLER_DELAY_MS", 200),
        use_rendering_transport=(
            use_rendering_transport
            if use_rendering_transport is not None
            else _env_bool("CRAWLER_USE_RENDERING", False)
        ),
        workers=workers if workers is not None else _env_int("CRAWLER_WORKERS", 1),
        request_timeout=_env_float("CRAWLER_REQUEST_TIMEOUT", 15.0),
        render_timeout_ms=_env_int("CRAWLER_RENDER_TIMEOUT_MS", 10_000),
        headless=_env_bool("HEADLESS", True),
        user_agent=os.getenv("CRAWLER_USER_AGENT") or DEFAULT_USER_AGENT,
        fetch_routes=fetch_routes or _env_routes("CRAWLER_FETCH_ROUTES") or (DIRECT_ROUTE,),
        report_path=Path(report_value).resolve() if report_value else None,
    )
    config.validate()
    return config
