"""Crawl orchestration service.

Connects link discovery, page fetching, extraction and the listing store:
one producer task walks the index and feeds a bounded queue; every link
taken off the queue gets its own fetch -> extract -> flatten -> store task.
"""

import asyncio
from typing import Dict, Optional, Set

import httpx
import structlog

from listing_parser.core.exceptions import ListingParserException, StoreError
from listing_parser.scrapers.base import ListingRecord
from listing_parser.scrapers.extractor import ListingExtractor
from listing_parser.scrapers.fetcher import PageFetcher
from listing_parser.scrapers.link_discovery import LinkDiscovery
from listing_parser.scrapers.utils.retry import store_retrying
from listing_parser.services.flattening import FlattenedRecord, flatten_listing
from listing_parser.services.listing_store import ListingStore

logger = structlog.get_logger(__name__)


class CrawlService:
    """Producer/consumer crawl loop with bounded buffering.

    The producer blocks once ``link_buffer_size`` links are waiting, which
    throttles discovery to the pace of the workers. Listing tasks are
    independent and complete in any order. ``stop()`` halts discovery,
    gives in-flight tasks ``shutdown_grace_seconds`` to finish and cancels
    the rest.
    """

    def __init__(
        self,
        discovery: LinkDiscovery,
        fetcher: PageFetcher,
        extractor: ListingExtractor,
        store: ListingStore,
        fetch_gallery: bool = True,
        default_city: str = "Unknown",
        link_buffer_size: int = 25,
        store_max_retries: int = 3,
        store_retry_backoff_seconds: float = 2.0,
        store_write_timeout_seconds: float = 30.0,
        shutdown_grace_seconds: float = 2.0,
    ):
        self.discovery = discovery
        self.fetcher = fetcher
        self.extractor = extractor
        self.store = store
        self.fetch_gallery = fetch_gallery
        self.default_city = default_city
        self.link_buffer_size = max(1, link_buffer_size)
        self.store_max_retries = max(1, store_max_retries)
        self.store_retry_backoff_seconds = store_retry_backoff_seconds
        self.store_write_timeout_seconds = store_write_timeout_seconds
        self.shutdown_grace_seconds = shutdown_grace_seconds

        self._stop_event = asyncio.Event()
        self.stats: Dict[str, int] = {
            "links_received": 0,
            "listings_scraped": 0,
            "listings_stored": 0,
            "scrape_errors": 0,
            "store_errors": 0,
        }
        self.logger = logger.bind(service="crawl_service")

    def stop(self) -> None:
        """Request an orderly shutdown of run()."""
        if not self._stop_event.is_set():
            self.logger.info("crawl_stop_requested")
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    async def scrape_listing(self, url: str) -> ListingRecord:
        """Fetch and extract one listing page.

        When the page itself yields no photos, the gallery endpoint is
        queried; a gallery failure only costs the photos.

        Raises:
            ListingParserException: If the page could not be fetched or parsed
        """
        soup = await self.fetcher.fetch(url)
        record = self.extractor.extract(soup, url)

        if self.fetch_gallery and not record.photos:
            try:
                record.photos = await self.fetcher.fetch_gallery(url)
            except ListingParserException as e:
                self.logger.warning("gallery_fetch_failed", url=url, error=str(e))

        return record

    async def process_link(self, url: str) -> bool:
        """Scrape, flatten and store one listing.

        Returns:
            True if the listing was stored
        """
        try:
            record = await self.scrape_listing(url)
        except (ListingParserException, httpx.HTTPError) as e:
            self.stats["scrape_errors"] += 1
            self.logger.warning("listing_scrape_failed", url=url, error=str(e))
            return False

        self.stats["listings_scraped"] += 1
        if not record.id:
            self.stats["store_errors"] += 1
            self.logger.warning("listing_without_id", url=url)
            return False

        flat = flatten_listing(record, url, default_city=self.default_city)
        return await self.store_with_retry(flat)

    async def store_with_retry(self, flat: FlattenedRecord) -> bool:
        """Write one record with linear backoff; drop it after the last attempt.

        Each attempt is bounded by ``store_write_timeout_seconds``.

        Returns:
            True if stored, False if every attempt failed
        """
        try:
            async for attempt in store_retrying(self.store_max_retries, self.store_retry_backoff_seconds):
                with attempt:
                    await asyncio.wait_for(self.store.upsert(flat), timeout=self.store_write_timeout_seconds)
        except (StoreError, asyncio.TimeoutError) as e:
            self.stats["store_errors"] += 1
            self.logger.error(
                "listing_store_failed",
                listing_id=flat.id,
                attempts=self.store_max_retries,
                error=str(e) or type(e).__name__,
            )
            return False

        self.stats["listings_stored"] += 1
        self.logger.info("listing_stored", listing_id=flat.id, url=flat.source_url)
        return True

    async def run(self, max_cycles: Optional[int] = None) -> Dict[str, int]:
        """Crawl until stop() is called, or until max_cycles cycles are done.

        Args:
            max_cycles: Number of crawl cycles to run (None = run until stopped)

        Returns:
            Final stats counters
        """
        queue: "asyncio.Queue[str]" = asyncio.Queue(maxsize=self.link_buffer_size)
        tasks: Set[asyncio.Task] = set()

        producer = asyncio.create_task(
            self.discovery.monitor(queue.put, self._stop_event, max_cycles=max_cycles),
            name="link_discovery",
        )
        self.logger.info("crawl_started", buffer_size=self.link_buffer_size, max_cycles=max_cycles)

        try:
            while not self._stop_event.is_set():
                try:
                    url = await asyncio.wait_for(queue.get(), timeout=0.5)
                except asyncio.TimeoutError:
                    if producer.done() and queue.empty():
                        break
                    continue

                self.stats["links_received"] += 1
                task = asyncio.create_task(self.process_link(url), name=url)
                tasks.add(task)
                task.add_done_callback(tasks.discard)
                task.add_done_callback(self._collect_listing_task)
        finally:
            await self._shutdown(producer, tasks)

        return dict(self.stats)

    def _collect_listing_task(self, task: asyncio.Task) -> None:
        """Count and log a listing task that died with an unexpected error."""
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        self.stats["scrape_errors"] += 1
        self.logger.error(
            "listing_task_failed",
            url=task.get_name(),
            error=str(error) or type(error).__name__,
            error_type=type(error).__name__,
        )

    async def _shutdown(self, producer: asyncio.Task, tasks: Set[asyncio.Task]) -> None:
        if not producer.done():
            producer.cancel()
        await asyncio.gather(producer, return_exceptions=True)
        if not producer.cancelled() and producer.exception() is not None:
            self.logger.error("link_discovery_failed", error=str(producer.exception()))

        pending = set(tasks)
        if pending:
            # Natural completion waits for every task; a stop request gets the grace period
            timeout = self.shutdown_grace_seconds if self._stop_event.is_set() else None
            _, pending = await asyncio.wait(pending, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                self.logger.warning("listing_tasks_cancelled", count=len(pending))

        self.logger.info("crawl_finished", **self.stats)
