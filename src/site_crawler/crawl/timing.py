"""Per-page latency tracking and ETA estimation."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Optional

HISTORY_SIZE = 50
WARMUP_SAMPLES = 5


class EstimateStatus(Enum):
    WARMING_UP = "warming_up"
    ESTIMATING = "estimating"
    FINISHING = "finishing"


@dataclass(frozen=True)
class Estimate:
    status: EstimateStatus
    seconds: float = 0.0

    def formatted(self) -> str:
        if self.status is EstimateStatus.WARMING_UP:
            return "calculating..."
        if self.status is EstimateStatus.FINISHING:
            return "finishing..."
        return format_duration(self.seconds)


def format_duration(seconds: float) -> str:
    """``3725`` -> ``"1h 2m 5s"``; leading zero units are dropped."""

    total = max(0, int(round(seconds)))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def pages_remaining(queued: int, budget: int, processed: int) -> int:
    return max(0, min(queued, budget - processed))


class TimeTracker:
    """Rolling average over the most recent per-page samples (milliseconds)."""

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._samples: Deque[float] = deque(maxlen=HISTORY_SIZE)
        self._average_ms = 0.0
        self._started_at: Optional[float] = None

    def start(self) -> None:
        with self._lock:
            self._samples.clear()
            self._average_ms = 0.0
            self._started_at = self._clock()

    def record(self, sample_ms: float) -> None:
        with self._lock:
            self._samples.append(max(0.0, float(sample_ms)))
            self._average_ms = sum(self._samples) / len(self._samples)

    @property
    def sample_count(self) -> int:
        with self._lock:
            return len(self._samples)

    @property
    def average_ms(self) -> float:
        with self._lock:
            return self._average_ms

    def estimate(self, remaining: int) -> Estimate:
        with self._lock:
            if len(self._samples) < WARMUP_SAMPLES:
                return Estimate(EstimateStatus.WARMING_UP)
            if remaining <= 0:
                return Estimate(EstimateStatus.FINISHING)
            return Estimate(EstimateStatus.ESTIMATING, remaining * self._average_ms / 1000)

    def elapsed(self) -> float:
        with self._lock:
            if self._started_at is None:
                return 0.0
            return max(0.0, self._clock() - self._started_at)
