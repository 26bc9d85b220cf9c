"""Command line interface for the site crawler."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .core.config import ConfigurationError, CrawlerConfig, load_configuration
from .core.models import LogEvent, LogLevel, ProgressEvent
from .core.report import EXPORT_FORMATS, CrawlResult, export_format
from .crawl.engine import CrawlEngine, InvalidSeedError
from .fetch.plain import PUBLIC_RELAY_ROUTES

JOIN_POLL_SECONDS = 0.5

_LOG_MARKERS = {
    LogLevel.INFO: "[*]",
    LogLevel.CRAWL: "[>]",
    LogLevel.DISCOVER: "[+]",
    LogLevel.REDIRECT: "[~]",
    LogLevel.ERROR: "[!]",
    LogLevel.SUCCESS: "[+]",
    LogLevel.WARNING: "[!]",
}


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Crawl every same-domain page reachable from a URL")
    parser.add_argument("url", help="Seed URL (e.g. https://example.com)")
    parser.add_argument("--max-pages", type=int, help="Page budget (default: 500 or CRAWLER_MAX_PAGES)")
    parser.add_argument("--delay", type=int, dest="delay_ms", help="Delay between requests in ms (default: 200)")
    parser.add_argument(
        "--render",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Render script-heavy pages with headless Chromium",
    )
    parser.add_argument("--workers", type=int, help="Pages fetched in parallel (default: 1)")
    parser.add_argument(
        "--route",
        action="append",
        dest="routes",
        help="Fetch route template, e.g. '{url}' or 'https://relay/?u={quoted_url}' (repeatable)",
    )
    parser.add_argument(
        "--public-relays",
        action="store_true",
        help="Fall back to public CORS relays after the direct route",
    )
    parser.add_argument("--output", help="Export file (default: CRAWLER_REPORT, or no file)")
    parser.add_argument("--format", choices=EXPORT_FORMATS, help="Export format (default: from the file suffix)")
    parser.add_argument("--verbose", action="store_true", help="Show every crawl event")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlerConfig:
    routes = tuple(args.routes or ())
    if args.public_relays:
        routes = (routes or ("{url}",)) + PUBLIC_RELAY_ROUTES
    return load_configuration(
        max_pages=args.max_pages,
        delay_ms=args.delay_ms,
        use_rendering_transport=args.render,
        workers=args.workers,
        fetch_routes=routes or None,
        report_name=args.output,
    )


def print_progress(event: ProgressEvent) -> None:
    sys.stderr.write(
        f"\r\033[K[{event.progress_percent:5.1f}%] visited {event.visited} | queued {event.queued}"
        f" | failed {event.failed} | elapsed {event.elapsed_formatted} | eta {event.eta_formatted}"
    )
    sys.stderr.flush()


def make_log_printer(verbose: bool):
    quiet_levels = {LogLevel.CRAWL, LogLevel.DISCOVER, LogLevel.REDIRECT}

    def print_log(event: LogEvent) -> None:
        if not verbose and event.level in quiet_levels:
            return
        sys.stderr.write(f"\r\033[K{_LOG_MARKERS[event.level]} {event.message}\n")
        sys.stderr.flush()

    return print_log


def print_summary(result: CrawlResult) -> None:
    stats = result.stats
    print("=" * 50)
    print(f"Run state          : {result.state.value}")
    print(f"Pages collected    : {result.total_pages}")
    print(f"Failed pages       : {len(result.failed_urls)}")
    print(f"Links discovered   : {stats.discovered}")
    print(f"Duplicates         : {stats.duplicate}")
    print(f"External links     : {stats.external}")
    if result.error:
        print(f"Error              : {result.error}")
    print("=" * 50)


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
        if config.report_path is not None:
            export_format(Path(config.report_path), args.format)
    except ValueError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 2

    engine = CrawlEngine(config, on_progress=print_progress, on_log=make_log_printer(args.verbose))
    try:
        thread = engine.start_in_background(args.url)
    except (InvalidSeedError, ConfigurationError) as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 2

    try:
        while thread.is_alive():
            thread.join(JOIN_POLL_SECONDS)
    except KeyboardInterrupt:
        engine.stop()
        thread.join()

    sys.stderr.write("\n")
    result = engine.get_results()
    print_summary(result)

    if config.report_path is not None:
        report_path = Path(config.report_path)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        result.save(report_path, fmt=args.format)
        print(f"[+] Results written to {report_path}")
    elif args.format:
        print(result.render(args.format))

    return 0 if result.error is None else 1


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
