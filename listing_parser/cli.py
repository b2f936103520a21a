"""Command-line entry point.

Usage:
    # Crawl the index continuously and store every listing
    listing-parser crawl

    # Run two full crawl cycles, then exit
    listing-parser crawl --cycles 2

    # Extract one listing and print it as JSON (nothing is stored)
    listing-parser scrape https://a.intimcity.gold/anketa12345.htm

    # One pass over the index, print the first 20 listing links
    listing-parser links --limit 20

    # Aggregate counts from the store
    listing-parser stats

    # Serve the HTTP API
    listing-parser serve --port 8080
"""

import argparse
import asyncio
import json
import signal
import sys
from typing import List, Optional

import structlog
import uvicorn

from listing_parser.config import settings
from listing_parser.core.exceptions import ListingParserException
from listing_parser.core.logging import configure_logging
from listing_parser.db.session import async_session_factory
from listing_parser.scrapers.crawl_service import CrawlService
from listing_parser.scrapers.factory import ComponentFactory
from listing_parser.services.listing_store import ListingStore

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _install_signal_handlers(service: CrawlService) -> None:
    """SIGINT/SIGTERM request an orderly stop instead of killing the loop."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service.stop)
        except (NotImplementedError, RuntimeError):
            # add_signal_handler is unavailable on Windows event loops
            signal.signal(sig, lambda *_: service.stop())


async def crawl(cycles: Optional[int]) -> int:
    store = ListingStore(async_session_factory)
    if not await store.ping():
        logger.error("store_unreachable", database_url=settings.DATABASE_URL.split("@")[-1])
        return 1
    await store.create_all()

    factory = ComponentFactory(settings)
    try:
        service = factory.create_crawl_service(async_session_factory)
        _install_signal_handlers(service)
        stats = await service.run(max_cycles=cycles)
    finally:
        await factory.aclose()

    print(json.dumps(stats, indent=2))
    return 0


async def scrape(url: str) -> int:
    factory = ComponentFactory(settings)
    try:
        service = factory.create_crawl_service(async_session_factory)
        record = await service.scrape_listing(url)
    except ListingParserException as e:
        logger.error("scrape_failed", url=url, error=e.message)
        return 1
    finally:
        await factory.aclose()

    print(json.dumps(record.to_dict(), ensure_ascii=False, indent=2))
    return 0


async def links(limit: Optional[int]) -> int:
    factory = ComponentFactory(settings)
    try:
        discovery = factory.create_link_discovery()
        found = await discovery.scrape_all_listing_links()
    finally:
        await factory.aclose()

    for link in found[:limit] if limit else found:
        print(f"{link.id or '-'}\t{link.url}\t{link.title}")
    print(f"# {len(found)} links", file=sys.stderr)
    return 0


async def stats() -> int:
    store = ListingStore(async_session_factory)
    print(json.dumps(await store.get_stats(), ensure_ascii=False, indent=2))
    return 0


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed Namespace object.
    """
    parser = argparse.ArgumentParser(
        prog="listing-parser",
        description="Crawl listing pages, extract structured records and store them.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Log level (default: %(default)s)")
    parser.add_argument("--log-json", action="store_true", default=settings.LOG_JSON, help="Emit JSON log lines")

    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl_parser = subparsers.add_parser("crawl", help="Crawl continuously into the store")
    crawl_parser.add_argument(
        "--cycles",
        type=int,
        default=None,
        help="Stop after this many full crawl cycles (default: run until interrupted)",
    )

    scrape_parser = subparsers.add_parser("scrape", help="Extract one listing and print it as JSON")
    scrape_parser.add_argument("url", help="Listing page URL")

    links_parser = subparsers.add_parser("links", help="Print listing links from one index pass")
    links_parser.add_argument("--limit", type=int, default=None, help="Print at most N links")

    subparsers.add_parser("stats", help="Print aggregate store statistics")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s)")
    serve_parser.add_argument("--port", type=int, default=8080, help="Bind port (default: %(default)s)")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level, json=args.log_json)

    if args.command == "serve":
        uvicorn.run("listing_parser.main:app", host=args.host, port=args.port, log_level=args.log_level.lower())
        return 0

    if args.command == "crawl":
        coro = crawl(args.cycles)
    elif args.command == "scrape":
        coro = scrape(args.url)
    elif args.command == "links":
        coro = links(args.limit)
    else:
        coro = stats()

    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
