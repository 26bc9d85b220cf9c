"""URL frontier: queued/visited/failed sets with dedup and domain scoping."""

from __future__ import annotations

import threading
from collections import OrderedDict
from enum import Enum
from typing import List, Optional

from ..core.models import CrawlStats
from .canonical import URLRejected, canonicalize, host_of


class OfferOutcome(Enum):
    QUEUED = "queued"
    REJECTED = "rejected"
    EXTERNAL = "external"
    DUPLICATE = "duplicate"


class Frontier:
    """Owns the three URL sets and the counters that describe them.

    Every mutation happens under a single lock so that set membership and
    statistics stay consistent when pages are processed by several workers.
    A URL lives in at most one of ``queued``, ``visited`` and ``failed``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queued: "OrderedDict[str, None]" = OrderedDict()
        self._visited: set[str] = set()
        self._failed: set[str] = set()
        self._stats = CrawlStats()
        self.seed_domain = ""

    def reset(self, seed_url: str) -> str:
        """Clears all state and queues the canonical seed. Returns the seed."""

        seed = canonicalize(seed_url)
        with self._lock:
            self._queued.clear()
            self._visited.clear()
            self._failed.clear()
            self._stats = CrawlStats()
            self.seed_domain = host_of(seed)
            self._queued[seed] = None
        return seed

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------
    def offer(self, url: str, seed_domain: Optional[str] = None) -> OfferOutcome:
        domain = seed_domain if seed_domain is not None else self.seed_domain
        try:
            canonical = canonicalize(url)
        except URLRejected:
            canonical = None

        with self._lock:
            self._stats.discovered += 1
            if canonical is None:
                return OfferOutcome.REJECTED
            if host_of(canonical) != domain:
                self._stats.external += 1
                return OfferOutcome.EXTERNAL
            if canonical in self._queued or canonical in self._visited or canonical in self._failed:
                self._stats.duplicate += 1
                return OfferOutcome.DUPLICATE
            self._queued[canonical] = None
            return OfferOutcome.QUEUED

    def take_next(self) -> Optional[str]:
        with self._lock:
            if not self._queued:
                return None
            url, _ = self._queued.popitem(last=False)
            return url

    # ------------------------------------------------------------------
    # Terminal classification
    # ------------------------------------------------------------------
    def mark_visited(self, url: str) -> bool:
        with self._lock:
            if url in self._visited or url in self._failed:
                return False
            self._queued.pop(url, None)
            self._visited.add(url)
            return True

    def mark_failed(self, url: str) -> bool:
        with self._lock:
            if url in self._failed:
                return False
            self._queued.pop(url, None)
            self._visited.discard(url)
            self._failed.add(url)
            self._stats.failed += 1
            return True

    def record_success(self) -> None:
        with self._lock:
            self._stats.succeeded += 1

    def record_redirect(self) -> None:
        with self._lock:
            self._stats.duplicate += 1

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------
    def contains(self, url: str) -> bool:
        with self._lock:
            return url in self._queued or url in self._visited or url in self._failed

    @property
    def stats(self) -> CrawlStats:
        with self._lock:
            return self._stats.copy()

    @property
    def queued(self) -> List[str]:
        with self._lock:
            return list(self._queued)

    @property
    def visited(self) -> List[str]:
        with self._lock:
            return sorted(self._visited)

    @property
    def failed(self) -> List[str]:
        with self._lock:
            return sorted(self._failed)

    @property
    def queued_count(self) -> int:
        with self._lock:
            return len(self._queued)

    @property
    def visited_count(self) -> int:
        with self._lock:
            return len(self._visited)

    @property
    def failed_count(self) -> int:
        with self._lock:
            return len(self._failed)
