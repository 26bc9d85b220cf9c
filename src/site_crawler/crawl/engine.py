"""Crawl engine: run state machine and the per-page fetch/extract/offer loop."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Optional

from ..core.config import CrawlerConfig
from ..core.models import LogEvent, LogLevel, ProgressEvent, RunState
from ..core.report import CrawlResult
from ..fetch.base import FetchError, Fetcher
from ..fetch.strategy import FetchStrategy
from .canonical import URLRejected, canonicalize, host_of
from .frontier import Frontier, OfferOutcome
from .links import extract_links
from .timing import TimeTracker, format_duration, pages_remaining

logger = logging.getLogger(__name__)

PAUSE_POLL_SECONDS = 0.1

ProgressCallback = Callable[[ProgressEvent], None]
LogCallback = Callable[[LogEvent], None]


class InvalidSeedError(ValueError):
    """Raised by ``start`` when the seed URL has no canonical form."""


class CrawlInProgressError(RuntimeError):
    """Raised when ``start`` is called while a run is still active."""


class CrawlEngine:
    """Owns one crawl at a time: frontier, time tracker and run state.

    ``start`` blocks until the run ends; ``pause``, ``resume`` and ``stop``
    may be called from other threads (or from the callbacks). Callbacks are
    invoked on worker threads.
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        *,
        fetcher: Optional[Fetcher] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_log: Optional[LogCallback] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config or CrawlerConfig()
        self._fetcher = fetcher
        self._on_progress = on_progress
        self._on_log = on_log
        self._clock = clock or time.monotonic
        self._frontier = Frontier()
        self._tracker = TimeTracker(self._clock)
        self._state = RunState.IDLE
        self._state_lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._resumed = threading.Event()
        self._resumed.set()
        self._seed_url = ""
        self._seed_domain = ""
        self.last_error: Optional[str] = None

    @property
    def state(self) -> RunState:
        with self._state_lock:
            return self._state

    @property
    def frontier(self) -> Frontier:
        return self._frontier

    @property
    def tracker(self) -> TimeTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------
    def start(self, seed_url: str) -> CrawlResult:
        seed = self._prepare(seed_url)
        return self._run(seed)

    def start_in_background(self, seed_url: str) -> threading.Thread:
        """Validates synchronously, then crawls on a daemon thread."""

        seed = self._prepare(seed_url)
        thread = threading.Thread(target=self._run, args=(seed,), name="site-crawler", daemon=True)
        thread.start()
        return thread

    def pause(self) -> bool:
        with self._state_lock:
            if self._state is not RunState.RUNNING:
                return False
            self._state = RunState.PAUSED
            self._resumed.clear()
        self._log("Paused", LogLevel.INFO)
        return True

    def resume(self) -> bool:
        with self._state_lock:
            if self._state is not RunState.PAUSED:
                return False
            self._state = RunState.RUNNING
            self._resumed.set()
        self._log("Resumed", LogLevel.INFO)
        return True

    def toggle_pause(self) -> bool:
        """Pauses a running crawl or resumes a paused one. Returns ``True`` if paused."""

        if self.pause():
            return True
        self.resume()
        return False

    def stop(self) -> bool:
        with self._state_lock:
            if not self._state.is_active:
                return False
            self._stop_requested.set()
            self._resumed.set()
        self._log("Stop requested", LogLevel.WARNING)
        return True

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def get_results(self) -> CrawlResult:
        return CrawlResult(
            seed_url=self._seed_url,
            urls=self._frontier.visited,
            stats=self._frontier.stats,
            failed_urls=self._frontier.failed,
            state=self.state,
            error=self.last_error,
        )

    def progress(self) -> ProgressEvent:
        visited = self._frontier.visited_count
        failed = self._frontier.failed_count
        queued = self._frontier.queued_count
        processed = visited + failed
        budget = self.config.max_pages
        estimate = self._tracker.estimate(pages_remaining(queued, budget, processed))
        return ProgressEvent(
            progress_percent=min(processed / budget * 100, 100.0),
            visited=visited,
            queued=queued,
            failed=failed,
            elapsed_formatted=format_duration(self._tracker.elapsed()),
            eta_formatted=estimate.formatted(),
            average_sec_per_page=round(self._tracker.average_ms / 1000, 3),
            pages_processed=processed,
            eta_status=estimate.status.value,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _prepare(self, seed_url: str) -> str:
        self.config.validate()
        try:
            seed = canonicalize(seed_url)
        except URLRejected as exc:
            raise InvalidSeedError(f"Invalid seed URL {seed_url!r} ({exc.reason.value})") from exc

        with self._state_lock:
            if self._state.is_active:
                raise CrawlInProgressError("A crawl is already running on this engine")
            self._frontier.reset(seed)
            self._tracker.start()
            self._stop_requested.clear()
            self._resumed.set()
            self.last_error = None
            self._seed_url = seed
            self._seed_domain = host_of(seed)
            self._state = RunState.RUNNING
        return seed

    def _run(self, seed: str) -> CrawlResult:
        fetcher = self._fetcher
        owns_fetcher = fetcher is None
        self._log(f"Starting crawl of {seed}", LogLevel.INFO)
        self._log(f"Page budget: {self.config.max_pages}", LogLevel.INFO)
        try:
            if fetcher is None:
                fetcher = FetchStrategy.from_config(self.config)
            self._crawl_all_pages(fetcher)
        except Exception as exc:
            logger.debug("Crawl loop aborted", exc_info=True)
            self.last_error = str(exc) or exc.__class__.__name__
            self._set_state(RunState.STOPPED)
            self._log(f"Crawl aborted: {self.last_error}", LogLevel.ERROR)
        else:
            if self._stop_requested.is_set():
                self._set_state(RunState.STOPPED)
                self._log("Crawl stopped", LogLevel.WARNING)
            else:
                self._set_state(RunState.COMPLETED)
                self._log_summary()
        finally:
            if self.state.is_active:
                self._set_state(RunState.STOPPED)
            if owns_fetcher and fetcher is not None:
                close = getattr(fetcher, "close", None)
                if callable(close):
                    close()
        return self.get_results()

    def _crawl_all_pages(self, fetcher: Fetcher) -> None:
        workers = self.config.workers
        pending: set[Future] = set()

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="crawl-worker") as executor:
            try:
                while not self._stop_requested.is_set():
                    if self.state is RunState.PAUSED:
                        if pending:
                            pending = self._collect(pending, timeout=PAUSE_POLL_SECONDS)
                        else:
                            self._resumed.wait(PAUSE_POLL_SECONDS)
                        continue

                    while len(pending) < workers and self._frontier.visited_count < self.config.max_pages:
                        url = self._frontier.take_next()
                        if url is None:
                            break
                        if not self._frontier.mark_visited(url):
                            continue
                        pending.add(executor.submit(self._crawl_single_page, fetcher, url))

                    if not pending:
                        break
                    pending = self._collect(pending)

                # stop requested: in-flight pages finish (or time out) first
                for future in pending:
                    future.result()
            except BaseException:
                # ends pacing waits before the executor joins its workers
                self._stop_requested.set()
                raise

    @staticmethod
    def _collect(pending: set[Future], timeout: Optional[float] = None) -> set[Future]:
        done, not_done = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
        for future in done:
            future.result()
        return set(not_done)

    def _crawl_single_page(self, fetcher: Fetcher, url: str) -> None:
        started = self._clock()
        self._log(f"Processing: {url}", LogLevel.CRAWL)

        try:
            page = fetcher.fetch(url)
        except FetchError as exc:
            self._frontier.mark_failed(url)
            self._log(f"Failed: {url} - {exc}", LogLevel.ERROR)
        else:
            if page.final_url != url:
                self._frontier.record_redirect()
                self._log(f"Redirect: {url} -> {page.final_url}", LogLevel.REDIRECT)
            self._frontier.record_success()

            for link in extract_links(page.content, page.base_url):
                if self._frontier.offer(link, self._seed_domain) is OfferOutcome.QUEUED:
                    self._log(f"Discovered: {link}", LogLevel.DISCOVER)

        self._tracker.record((self._clock() - started) * 1000)
        if self._on_progress is not None:
            self._on_progress(self.progress())

        if self.config.delay_ms:
            self._stop_requested.wait(self.config.delay_seconds)

    def _set_state(self, state: RunState) -> None:
        with self._state_lock:
            self._state = state

    def _log_summary(self) -> None:
        stats = self._frontier.stats
        self._log("Crawl complete", LogLevel.SUCCESS)
        self._log(f"  Succeeded: {self._frontier.visited_count} pages", LogLevel.SUCCESS)
        self._log(f"  Failed: {self._frontier.failed_count} pages", LogLevel.SUCCESS)
        self._log(f"  Duplicates: {stats.duplicate}", LogLevel.SUCCESS)
        self._log(f"  External links: {stats.external}", LogLevel.SUCCESS)

    def _log(self, message: str, level: LogLevel) -> None:
        logger.log(level.logging_level, message)
        if self._on_log is not None:
            self._on_log(LogEvent(message, level))
