"""Tests for the crawl producer/consumer loop.

Pages come from FakeFetcher; storage is either a real ListingStore on a
file-backed SQLite database or a FakeStore with injected failures.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

import pytest
from conftest import BASE_URL, LISTING_URL, FakeFetcher

from listing_parser.core.exceptions import StoreError
from listing_parser.scrapers.crawl_service import CrawlService
from listing_parser.scrapers.extractor import ListingExtractor
from listing_parser.scrapers.link_discovery import LinkDiscovery
from listing_parser.services.flattening import FlattenedRecord
from listing_parser.services.listing_store import ListingStore

INDEX = '<a href="/anketa101.htm">Анна</a><a href="/anketa102.htm">Мария</a>'
LISTING_101 = "<title>Анна</title><p>Возраст: 25</p><a href='/photos/101.jpg'>фото</a>"
LISTING_102 = "<title>Мария</title><p>Возраст: 30</p>"


class FakeStore:
    """Fails the first ``failures`` writes, optionally sleeping per write."""

    def __init__(self, failures: int = 0, delay: float = 0.0):
        self.failures = failures
        self.delay = delay
        self.attempts = 0
        self.stored: List[FlattenedRecord] = []

    async def upsert(self, flat: FlattenedRecord) -> None:
        self.attempts += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.attempts <= self.failures:
            raise StoreError(flat.id, "database unavailable")
        self.stored.append(flat)


class SlowFetcher(FakeFetcher):
    """Index pages answer at once; listing pages hang."""

    async def fetch(self, url: str):
        if "anketa" in url:
            await asyncio.sleep(30)
        return await super().fetch(url)


class BrokenExtractor(ListingExtractor):
    """Raises an error outside the expected scrape failures."""

    def extract(self, soup, url):
        raise RuntimeError("extractor bug")


def make_service(store, fetcher: Optional[FakeFetcher] = None, **kwargs) -> CrawlService:
    fetcher = fetcher or FakeFetcher(
        {
            BASE_URL: INDEX,
            f"{BASE_URL}/anketa101.htm": LISTING_101,
            f"{BASE_URL}/anketa102.htm": LISTING_102,
        },
        gallery={f"{BASE_URL}/anketa102.htm": [f"{BASE_URL}/photos/102.jpg"]},
    )
    kwargs.setdefault("store_retry_backoff_seconds", 0)
    kwargs.setdefault("extractor", ListingExtractor())
    return CrawlService(
        discovery=LinkDiscovery(fetcher, base_url=BASE_URL),
        fetcher=fetcher,
        store=store,
        **kwargs,
    )


def make_flat(listing_id: str = "101") -> FlattenedRecord:
    now = datetime.now(timezone.utc)
    return FlattenedRecord(id=listing_id, source_url=LISTING_URL, created_at=now, updated_at=now, last_scraped=now)


# ============================================================================
# TESTS: STORE RETRIES
# ============================================================================


class TestStoreWithRetry:
    async def test_succeeds_after_transient_failures(self):
        store = FakeStore(failures=2)
        service = make_service(store, store_max_retries=3)

        assert await service.store_with_retry(make_flat()) is True
        assert store.attempts == 3
        assert service.stats["listings_stored"] == 1
        assert service.stats["store_errors"] == 0

    async def test_drops_record_after_last_attempt(self):
        store = FakeStore(failures=10)
        service = make_service(store, store_max_retries=3)

        assert await service.store_with_retry(make_flat()) is False
        assert store.attempts == 3
        assert service.stats["store_errors"] == 1

    async def test_timed_out_write_counts_as_failure(self):
        store = FakeStore(delay=1.0)
        service = make_service(store, store_max_retries=2, store_write_timeout_seconds=0.01)

        assert await service.store_with_retry(make_flat()) is False
        assert store.attempts == 2
        assert store.stored == []


# ============================================================================
# TESTS: SINGLE LISTING
# ============================================================================


class TestProcessLink:
    async def test_scrape_listing_uses_page_photos(self):
        service = make_service(FakeStore())

        record = await service.scrape_listing(f"{BASE_URL}/anketa101.htm")

        assert record.id == "101"
        assert record.photos == [f"{BASE_URL}/photos/101.jpg"]
        assert service.fetcher.gallery_requests == []

    async def test_gallery_fills_missing_photos(self):
        service = make_service(FakeStore())

        record = await service.scrape_listing(f"{BASE_URL}/anketa102.htm")

        assert record.photos == [f"{BASE_URL}/photos/102.jpg"]

    async def test_gallery_failure_is_not_fatal(self):
        fetcher = FakeFetcher({f"{BASE_URL}/anketa102.htm": LISTING_102})
        service = make_service(FakeStore(), fetcher=fetcher)

        record = await service.scrape_listing(f"{BASE_URL}/anketa102.htm")

        assert record.photos == []
        assert record.personal.age == 30

    async def test_gallery_disabled(self):
        service = make_service(FakeStore(), fetch_gallery=False)

        await service.scrape_listing(f"{BASE_URL}/anketa102.htm")

        assert service.fetcher.gallery_requests == []

    async def test_fetch_failure_is_counted(self):
        service = make_service(FakeStore())

        assert await service.process_link(f"{BASE_URL}/anketa999.htm") is False
        assert service.stats["scrape_errors"] == 1

    async def test_listing_without_id_is_not_stored(self):
        fetcher = FakeFetcher({f"{BASE_URL}/about-her": LISTING_102})
        store = FakeStore()
        service = make_service(store, fetcher=fetcher)

        assert await service.process_link(f"{BASE_URL}/about-her") is False
        assert store.attempts == 0
        assert service.stats["store_errors"] == 1


# ============================================================================
# TESTS: RUN LOOP
# ============================================================================


class TestRun:
    async def test_one_cycle_end_to_end(self, file_session_factory):
        store = ListingStore(file_session_factory)
        service = make_service(store)

        stats = await asyncio.wait_for(service.run(max_cycles=1), timeout=10)

        assert stats["links_received"] == 2
        assert stats["listings_stored"] == 2
        assert stats["scrape_errors"] == 0

        stored = await store.get_by_id("102")
        assert stored.personal_name == "Мария"
        assert stored.personal_age == 30
        assert stored.photos_count == 1
        assert stored.location_city == "Moscow"

    async def test_visited_links_are_not_reprocessed(self):
        store = FakeStore()
        service = make_service(store)

        await asyncio.wait_for(service.run(max_cycles=1), timeout=10)
        stats = await asyncio.wait_for(service.run(max_cycles=1), timeout=10)

        assert stats["links_received"] == 2
        assert len(store.stored) == 2

    async def test_unexpected_listing_error_is_counted(self):
        store = FakeStore()
        service = make_service(store, extractor=BrokenExtractor())

        stats = await asyncio.wait_for(service.run(max_cycles=1), timeout=10)

        assert stats["links_received"] == 2
        assert stats["scrape_errors"] == 2
        assert stats["listings_scraped"] == 0
        assert store.stored == []

    async def test_stop_ends_continuous_crawl(self):
        store = FakeStore()
        service = make_service(store)

        task = asyncio.create_task(service.run())
        while service.stats["listings_stored"] < 2:
            await asyncio.sleep(0.01)
        service.stop()
        stats = await asyncio.wait_for(task, timeout=10)

        assert service.stopping is True
        assert stats["listings_stored"] == 2

    async def test_stop_cancels_tasks_after_grace_period(self):
        fetcher = SlowFetcher({BASE_URL: INDEX})
        service = make_service(FakeStore(), fetcher=fetcher, shutdown_grace_seconds=0.05)

        task = asyncio.create_task(service.run())
        while service.stats["links_received"] < 2:
            await asyncio.sleep(0.01)
        service.stop()
        stats = await asyncio.wait_for(task, timeout=5)

        assert stats["listings_stored"] == 0
        assert stats["listings_scraped"] == 0

    @pytest.mark.parametrize("buffer_size", [1, 25])
    async def test_small_buffer_still_delivers_every_link(self, buffer_size):
        store = FakeStore()
        service = make_service(store, link_buffer_size=buffer_size)

        stats = await asyncio.wait_for(service.run(max_cycles=1), timeout=10)

        assert stats["links_received"] == 2
        assert sorted(flat.id for flat in store.stored) == ["101", "102"]
