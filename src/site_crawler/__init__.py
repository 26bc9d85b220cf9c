"""Single-domain web crawler.

Discovers and fetches the same-domain pages reachable from a seed URL, up to
a page budget, and reports the visited URL list with crawl statistics.
"""

from __future__ import annotations

from .core.config import CrawlerConfig, load_configuration
from .core.models import CrawlStats, RunState
from .core.report import CrawlResult
from .crawl.engine import CrawlEngine

__version__ = "1.0.0"
__all__ = [
    "CrawlEngine",
    "CrawlResult",
    "CrawlStats",
    "CrawlerConfig",
    "RunState",
    "__version__",
    "load_configuration",
]
