"""Result snapshot of a crawl run and its export formats."""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import CrawlStats, RunState

EXPORT_FORMATS = ("csv", "json", "txt")


def export_format(path: Path, fmt: Optional[str] = None) -> str:
    """Format for ``path``: ``fmt`` if given, else the suffix, else json."""

    chosen = (fmt or path.suffix.lstrip(".") or "json").lower()
    if chosen not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {chosen!r} (expected one of {', '.join(EXPORT_FORMATS)})")
    return chosen


@dataclass
class CrawlResult:
    """Visited URLs and statistics of a (possibly unfinished) run."""

    seed_url: str = ""
    urls: List[str] = field(default_factory=list)
    stats: CrawlStats = field(default_factory=CrawlStats)
    failed_urls: List[str] = field(default_factory=list)
    state: RunState = RunState.IDLE
    error: Optional[str] = None

    @property
    def total_pages(self) -> int:
        return len(self.urls)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed_url": self.seed_url,
            "urls": sorted(self.urls),
            "stats": self.stats.as_dict(),
            "failed_urls": sorted(self.failed_urls),
            "total_pages": self.total_pages,
            "state": self.state.value,
            "error": self.error,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def to_csv(self) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["URL"])
        for url in sorted(self.urls):
            writer.writerow([url])
        return buffer.getvalue()

    def to_text(self) -> str:
        return "\n".join(sorted(self.urls))

    def render(self, fmt: str) -> str:
        if fmt == "csv":
            return self.to_csv()
        if fmt == "json":
            return self.to_json()
        if fmt == "txt":
            return self.to_text()
        raise ValueError(f"Unsupported export format: {fmt!r} (expected one of {', '.join(EXPORT_FORMATS)})")

    def save(self, path: Path, fmt: Optional[str] = None) -> None:
        """Writes the result, picking the format from the suffix unless given."""

        path.write_text(self.render(export_format(path, fmt)), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> "CrawlResult":
        raw = json.loads(path.read_text(encoding="utf-8"))
        return cls(
            seed_url=raw.get("seed_url", ""),
            urls=list(raw.get("urls", [])),
            stats=CrawlStats(**raw.get("stats", {})),
            failed_urls=list(raw.get("failed_urls", [])),
            state=RunState(raw.get("state", RunState.IDLE.value)),
            error=raw.get("error"),
        )
