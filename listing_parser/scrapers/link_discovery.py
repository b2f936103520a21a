"""Listing link discovery over a paginated index."""

import asyncio
import inspect
import re
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Union

import structlog
from bs4 import BeautifulSoup, Tag

from listing_parser.core.exceptions import ListingParserException
from listing_parser.scrapers.utils.normalizer import absolutize_url, clean_text, url_path

if TYPE_CHECKING:
    from listing_parser.scrapers.fetcher import PageFetcher

logger = structlog.get_logger(__name__)

# Matched against the lower-cased URL path
LISTING_PATTERNS = [
    re.compile(r"anketa\d+"),
    re.compile(r"profile\d+"),
    re.compile(r"user\d+"),
    re.compile(r"girl\d+"),
    re.compile(r"id\d+"),
    re.compile(r"listing\d+"),
]

# Matched against the whole lower-cased URL
EXCLUDE_PATTERNS = [
    re.compile(p)
    for p in (
        r"page=",
        r"[?&]p=",
        r"category",
        r"search",
        r"filter",
        r"sort",
        r"login",
        r"register",
        r"auth",
        r"signup",
        r"contact",
        r"about",
        r"help",
        r"#",
    )
]

ID_PATTERNS = [
    re.compile(r"anketa(\d+)"),
    re.compile(r"profile(\d+)"),
    re.compile(r"user(\d+)"),
    re.compile(r"girl(\d+)"),
    re.compile(r"id(\d+)"),
    re.compile(r"listing(\d+)"),
    re.compile(r"/(\d+)/?$"),
]

_PAGE_PARAM = re.compile(r"(?:page=|p=|страница=)(\d+)", re.IGNORECASE)
_PAGE_NUMBER_TEXT = re.compile(r"^\d+$")
_PAGE_PATH = re.compile(r"/p\d+/?$")
_PAGINATION_CONTAINER = re.compile(r"pag|nav", re.IGNORECASE)
_ELLIPSIS_PAGINATION = re.compile(r"\d+\s+\d+\s+\d+\s+\d+\s+\d+\s*(?:\.\.\.|…)\s*(\d+)")

Emit = Callable[[str], Union[None, Awaitable[None]]]


def is_listing_link(url: str) -> bool:
    """Classify a URL as a listing detail page.

    True only for http(s) URLs whose path carries a numeric-id token and
    which match none of the navigation/auth/search exclusions.
    """
    lowered = url.strip().lower()
    if not lowered.startswith(("http://", "https://")):
        return False
    if any(pattern.search(lowered) for pattern in EXCLUDE_PATTERNS):
        return False
    path = url_path(lowered)
    return any(pattern.search(path) for pattern in LISTING_PATTERNS)


def extract_id_from_url(url: str) -> str:
    """Numeric listing id from a URL, or "" if none of the patterns match."""
    for pattern in ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return ""


def _is_page_control(anchor: Tag) -> bool:
    """A numbered anchor that is a pagination control, not a stray number."""
    href = anchor.get("href", "")
    if _PAGE_PARAM.search(href) or _PAGE_PATH.search(href):
        return True
    for parent in anchor.parents:
        marker = " ".join(parent.get("class") or []) + " " + (parent.get("id") or "")
        if parent.name == "nav" or _PAGINATION_CONTAINER.search(marker):
            return True
    return False


@dataclass(frozen=True)
class CandidateLink:
    url: str
    title: str = ""
    id: str = ""


class VisitedLinkSet:
    """URLs already emitted, shared across crawl cycles.

    Unbounded by default. With max_size > 0 the oldest URLs are evicted
    first once the cap is reached, so an evicted URL can be emitted again.
    """

    def __init__(self, max_size: int = 0):
        self.max_size = max(0, max_size)
        self._urls: "OrderedDict[str, None]" = OrderedDict()
        self._lock = threading.Lock()

    def add_if_new(self, url: str) -> bool:
        """Record url; True if it had not been seen before."""
        with self._lock:
            if url in self._urls:
                return False
            self._urls[url] = None
            if self.max_size and len(self._urls) > self.max_size:
                self._urls.popitem(last=False)
            return True

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._urls

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)


class LinkDiscovery:
    """Walks the paginated index and yields listing links.

    Page failures are logged and skipped; they never abort a cycle.
    """

    def __init__(
        self,
        fetcher: "PageFetcher",
        base_url: str,
        page_url_template: str = "{base_url}/?page={page}",
        alt_page_url_template: str = "{base_url}/p{page}",
        visited: Optional[VisitedLinkSet] = None,
    ):
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")
        self.page_url_template = page_url_template
        self.alt_page_url_template = alt_page_url_template
        self.visited = visited if visited is not None else VisitedLinkSet()
        self.cycles_completed = 0
        self.logger = logger.bind(component="link_discovery", base_url=self.base_url)

    def page_url(self, page: int, template: Optional[str] = None) -> str:
        """URL of an index page; page 1 is the index root."""
        if page <= 1:
            return self.base_url
        return (template or self.page_url_template).format(base_url=self.base_url, page=page)

    async def discover_total_page_count(self) -> int:
        """Highest page number advertised on the index root; at least 1."""
        try:
            soup = await self.fetcher.fetch(self.base_url)
        except ListingParserException as e:
            self.logger.warning("page_count_fetch_failed", error=str(e))
            return 1
        return self.page_count_from_document(soup)

    @staticmethod
    def page_count_from_document(soup: BeautifulSoup) -> int:
        max_page = 0
        for anchor in soup.find_all("a", href=True):
            match = _PAGE_PARAM.search(anchor["href"])
            if match:
                max_page = max(max_page, int(match.group(1)))
            text = anchor.get_text().strip()
            if _PAGE_NUMBER_TEXT.match(text) and _is_page_control(anchor):
                max_page = max(max_page, int(text))

        if max_page == 0:
            match = _ELLIPSIS_PAGINATION.search(soup.get_text(" "))
            if match:
                max_page = int(match.group(1))

        return max(1, max_page)

    async def discover_page_links(self, page: int) -> List[CandidateLink]:
        """Listing links on one index page, de-duplicated within the page.

        Raises:
            ListingParserException: If the page (and its alternative URL) could not be fetched
        """
        url = self.page_url(page)
        try:
            soup = await self.fetcher.fetch(url)
        except ListingParserException as e:
            if page <= 1:
                raise
            alt_url = self.page_url(page, self.alt_page_url_template)
            self.logger.debug("page_fetch_retry_alt_url", page=page, url=url, alt_url=alt_url, error=str(e))
            url = alt_url
            soup = await self.fetcher.fetch(url)
        return self.links_from_document(soup, url)

    def links_from_document(self, soup: BeautifulSoup, page_url: str) -> List[CandidateLink]:
        links: List[CandidateLink] = []
        seen = set()
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if not href:
                continue
            full_url = absolutize_url(href, page_url)
            if full_url in seen or not is_listing_link(full_url):
                continue
            seen.add(full_url)
            title = clean_text(anchor.get_text(" ")) or anchor.get("title", "")
            links.append(CandidateLink(url=full_url, title=title, id=extract_id_from_url(full_url)))
        return links

    async def scrape_all_listing_links(self) -> List[CandidateLink]:
        """One pass over every index page, not filtered by the visited set."""
        total_pages = await self.discover_total_page_count()
        self.logger.info("scrape_all_started", total_pages=total_pages)

        all_links: List[CandidateLink] = []
        for page in range(1, total_pages + 1):
            try:
                all_links.extend(await self.discover_page_links(page))
            except ListingParserException as e:
                self.logger.warning("page_scrape_failed", page=page, error=str(e))

        self.logger.info("scrape_all_completed", links=len(all_links))
        return all_links

    async def run_crawl_cycle(
        self,
        emit: Emit,
        stop_event: Optional[asyncio.Event] = None,
        total_pages: Optional[int] = None,
    ) -> int:
        """Emit every not-yet-visited listing link from pages 1..total_pages.

        Args:
            emit: Called once per new URL; may be a coroutine function, in
                which case it is awaited (a full queue then blocks the cycle)
            stop_event: Checked before every page
            total_pages: Page count for this cycle (discovered if None)

        Returns:
            Number of newly emitted links
        """
        if total_pages is None:
            total_pages = await self.discover_total_page_count()

        emitted = 0
        for page in range(1, total_pages + 1):
            if stop_event is not None and stop_event.is_set():
                break
            try:
                links = await self.discover_page_links(page)
            except ListingParserException as e:
                self.logger.warning("page_scrape_failed", page=page, total_pages=total_pages, error=str(e))
                continue

            new_links = 0
            for link in links:
                if not self.visited.add_if_new(link.url):
                    continue
                result = emit(link.url)
                if inspect.isawaitable(result):
                    await result
                new_links += 1

            emitted += new_links
            self.logger.info("page_scraped", page=page, total_pages=total_pages, links=len(links), new_links=new_links)

        return emitted

    async def monitor(
        self,
        emit: Emit,
        stop_event: asyncio.Event,
        max_cycles: Optional[int] = None,
    ) -> None:
        """Crawl cycles back to back until stop_event is set.

        After the last page the next cycle starts again at page 1; the page
        count is re-discovered at the start of every cycle.

        Args:
            emit: Receives every newly discovered listing URL
            stop_event: Ends the loop before the next page once set
            max_cycles: Stop after this many cycles (None = never)
        """
        started = self.cycles_completed
        while not stop_event.is_set():
            if max_cycles is not None and self.cycles_completed - started >= max_cycles:
                break
            total_pages = await self.discover_total_page_count()
            cycle = self.cycles_completed + 1
            self.logger.info("crawl_cycle_started", cycle=cycle, total_pages=total_pages)
            emitted = await self.run_crawl_cycle(emit, stop_event, total_pages)
            self.cycles_completed = cycle
            self.logger.info("crawl_cycle_completed", cycle=cycle, new_links=emitted, visited=len(self.visited))
            # let other tasks run between cycles
            await asyncio.sleep(0)
