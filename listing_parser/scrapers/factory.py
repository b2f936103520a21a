"""Wiring of crawl components from settings.

This is the only place that reads Settings; every component below it
receives plain constructor arguments.
"""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from listing_parser.config import Settings, settings as default_settings
from listing_parser.scrapers.crawl_service import CrawlService
from listing_parser.scrapers.extractor import ListingExtractor
from listing_parser.scrapers.fetcher import PageFetcher
from listing_parser.scrapers.link_discovery import LinkDiscovery, VisitedLinkSet
from listing_parser.scrapers.utils.proxy_client import ClientFactory, ProxyRotationClient
from listing_parser.services.listing_store import ListingStore

logger = structlog.get_logger(__name__)


class ComponentFactory:
    """Builds and shares the crawl components.

    One ProxyRotationClient is created per factory and injected into every
    fetcher, so all callers share one rotation cursor.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        """Initialize the factory.

        Args:
            settings: Settings to read (defaults to the process settings)
            client_factory: Optional AsyncClient builder passed to the proxy client
        """
        self.settings = settings or default_settings
        self._client_factory = client_factory
        self._proxy_client: Optional[ProxyRotationClient] = None

    @property
    def proxy_client(self) -> ProxyRotationClient:
        if self._proxy_client is None:
            proxies = self.settings.get_proxy_list()
            self._proxy_client = ProxyRotationClient(
                proxies,
                timeout=self.settings.FETCH_TIMEOUT_SECONDS,
                max_retries=self.settings.PROXY_MAX_RETRIES,
                fallback_allowed=self.settings.PROXY_FALLBACK_ALLOWED,
                client_factory=self._client_factory,
            )
            if proxies:
                logger.info("proxy_client_initialized", proxy_count=len(proxies))
            else:
                logger.info("proxy_client_direct", reason="no_proxies_configured")
        return self._proxy_client

    def create_fetcher(self) -> PageFetcher:
        return PageFetcher(self.proxy_client, photo_base_url=self.settings.PHOTO_BASE_URL)

    def create_extractor(self) -> ListingExtractor:
        return ListingExtractor(default_city=self.settings.DEFAULT_CITY)

    def create_link_discovery(self, fetcher: Optional[PageFetcher] = None) -> LinkDiscovery:
        return LinkDiscovery(
            fetcher or self.create_fetcher(),
            base_url=self.settings.BASE_URL,
            page_url_template=self.settings.PAGE_URL_TEMPLATE,
            alt_page_url_template=self.settings.ALT_PAGE_URL_TEMPLATE,
            visited=VisitedLinkSet(max_size=self.settings.VISITED_LINKS_MAX),
        )

    def create_crawl_service(self, session_factory: async_sessionmaker[AsyncSession]) -> CrawlService:
        fetcher = self.create_fetcher()
        return CrawlService(
            discovery=self.create_link_discovery(fetcher),
            fetcher=fetcher,
            extractor=self.create_extractor(),
            store=ListingStore(session_factory),
            fetch_gallery=self.settings.FETCH_GALLERY,
            link_buffer_size=self.settings.LINK_BUFFER_SIZE,
            store_max_retries=self.settings.STORE_MAX_RETRIES,
            store_retry_backoff_seconds=self.settings.STORE_RETRY_BACKOFF_SECONDS,
            store_write_timeout_seconds=self.settings.STORE_WRITE_TIMEOUT_SECONDS,
            shutdown_grace_seconds=self.settings.SHUTDOWN_GRACE_SECONDS,
        )

    async def aclose(self) -> None:
        """Close pooled HTTP connections."""
        if self._proxy_client is not None:
            await self._proxy_client.aclose()
