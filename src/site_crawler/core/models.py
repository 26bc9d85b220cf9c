"""Shared data structures exchanged between the engine and its consumers."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict


class RunState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"

    @property
    def is_active(self) -> bool:
        return self in (RunState.RUNNING, RunState.PAUSED)


class LogLevel(Enum):
    """Severity/category of a crawl log event."""

    INFO = "info"
    CRAWL = "crawl"
    DISCOVER = "discover"
    REDIRECT = "redirect"
    ERROR = "error"
    SUCCESS = "success"
    WARNING = "warning"

    @property
    def logging_level(self) -> int:
        return _STDLIB_LEVELS.get(self, logging.INFO)


_STDLIB_LEVELS = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.DISCOVER: logging.DEBUG,
}


@dataclass
class CrawlStats:
    """Counters collected during a run."""

    discovered: int = 0
    succeeded: int = 0
    failed: int = 0
    duplicate: int = 0
    external: int = 0

    def copy(self) -> "CrawlStats":
        return CrawlStats(**asdict(self))

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class LogEvent:
    message: str
    level: LogLevel = LogLevel.INFO


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot emitted once per processed page."""

    progress_percent: float
    visited: int
    queued: int
    failed: int
    elapsed_formatted: str
    eta_formatted: str
    average_sec_per_page: float
    pages_processed: int
    eta_status: str = "warming_up"
