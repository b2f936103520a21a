"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from bs4 import BeautifulSoup
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from listing_parser.core.exceptions import BadStatusError
from listing_parser.models import Base

FIXTURES_DIR = Path(__file__).parent / "fixtures"

LISTING_URL = "https://a.intimcity.gold/anketa12345.htm"
BASE_URL = "https://a.intimcity.gold"


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


def load_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


def soup_of(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


@pytest.fixture
def listing_html() -> str:
    return load_fixture("listing.html")


@pytest.fixture
def index_html() -> str:
    return load_fixture("index.html")


# ============================================================================
# DATABASE
# ============================================================================


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


# ============================================================================
# HTTP
# ============================================================================


def mock_client_factory(handler: Callable[[Optional[str], httpx.Request], httpx.Response]):
    """Client factory whose clients answer through handler(proxy_url, request).

    proxy_url is None for the direct route.
    """

    def factory(proxy_url: Optional[str], timeout: float) -> httpx.AsyncClient:
        transport = httpx.MockTransport(lambda request: handler(proxy_url, request))
        return httpx.AsyncClient(transport=transport, timeout=timeout)

    return factory


class FakeFetcher:
    """PageFetcher stand-in serving HTML from a dict keyed by URL."""

    def __init__(self, pages: Dict[str, str], gallery: Optional[Dict[str, List[str]]] = None):
        self.pages = pages
        self.gallery = gallery or {}
        self.fetched: List[str] = []
        self.gallery_requests: List[str] = []

    async def fetch(self, url: str) -> BeautifulSoup:
        self.fetched.append(url)
        if url not in self.pages:
            raise BadStatusError(url, 404)
        return soup_of(self.pages[url])

    async def fetch_gallery(self, url: str) -> List[str]:
        self.gallery_requests.append(url)
        if url not in self.gallery:
            raise BadStatusError(url, 404)
        return list(self.gallery[url])


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """File-backed SQLite database for tests with concurrent writers.

    Every session gets its own connection, unlike the shared in-memory one.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'listings.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
