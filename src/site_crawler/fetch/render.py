"""Render-capable transport backed by headless Chromium (Playwright)."""

from __future__ import annotations

import logging
import time
from typing import Any

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from .base import FetchError, FetchFailure, FetchedPage, canonical_final_url

logger = logging.getLogger(__name__)

DEFAULT_RENDER_TIMEOUT_MS = 10_000
SETTLE_TIMEOUT_MS = 3000


class RenderTransport:
    """Executes page scripts before returning the document.

    A browser is launched per fetch so the transport can be used from any
    worker thread (sync Playwright objects are bound to their thread). The
    browser start and the navigation share one hard timeout; a late page
    raises ``FetchError(TIMEOUT)``.
    """

    def __init__(
        self,
        *,
        timeout_ms: int = DEFAULT_RENDER_TIMEOUT_MS,
        headless: bool = True,
        user_agent: str | None = None,
    ) -> None:
        self._timeout_ms = timeout_ms
        self._headless = headless
        self._user_agent = user_agent

    def fetch(self, url: str) -> FetchedPage:
        deadline = time.monotonic() + self._timeout_ms / 1000
        try:
            with sync_playwright() as playwright:
                browser = playwright.chromium.launch(headless=self._headless, timeout=self._remaining_ms(deadline))
                try:
                    context = browser.new_context(user_agent=self._user_agent) if self._user_agent else browser.new_context()
                    page = context.new_page()
                    page.goto(url, timeout=self._remaining_ms(deadline), wait_until="domcontentloaded")
                    self._wait_settled(page, deadline)
                    content = page.content()
                    final = page.url or url
                finally:
                    browser.close()
        except PlaywrightTimeoutError as exc:
            raise FetchError(
                FetchFailure.TIMEOUT,
                f"Rendering {url} exceeded {self._timeout_ms} ms",
            ) from exc
        except PlaywrightError as exc:
            raise FetchError(FetchFailure.RENDER_FAILED, f"Rendering {url} failed: {exc}") from exc

        return FetchedPage(
            content=content,
            final_url=canonical_final_url(final),
            base_url=final,
            route="render",
        )

    @staticmethod
    def _remaining_ms(deadline: float) -> float:
        remaining = (deadline - time.monotonic()) * 1000
        if remaining <= 0:
            raise PlaywrightTimeoutError("render deadline reached")
        return remaining

    def _wait_settled(self, page: Any, deadline: float) -> None:
        budget = min(SETTLE_TIMEOUT_MS, (deadline - time.monotonic()) * 1000)
        if budget <= 0:
            return
        try:
            page.wait_for_load_state("networkidle", timeout=budget)
        except PlaywrightTimeoutError:
            logger.debug("Page did not reach network idle; using current DOM")
