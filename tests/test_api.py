"""Tests for the HTTP surface (health and single-URL scrape)."""

import json

import httpx
import pytest
import pytest_asyncio

from listing_parser.core.exceptions import BadStatusError
from listing_parser.dependencies import get_crawl_service
from listing_parser.main import app
from listing_parser.scrapers.base import ListingRecord, PersonalInfo

LISTING_URL = "https://a.intimcity.gold/anketa12345.htm"


class FakeCrawlService:
    def __init__(self, error: Exception = None):
        self.error = error
        self.requested = []

    async def scrape_listing(self, url: str) -> ListingRecord:
        self.requested.append(url)
        if self.error is not None:
            raise self.error
        return ListingRecord(id="12345", personal=PersonalInfo(name="Анна", age=25))


@pytest.fixture
def service():
    return FakeCrawlService()


@pytest_asyncio.fixture
async def client(service):
    """ASGI client with the crawl service replaced; lifespan is not run."""
    app.dependency_overrides[get_crawl_service] = lambda: service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class TestHealth:
    @pytest.mark.parametrize("path", ["/health", "/api/v1/health"])
    async def test_health(self, client, path):
        response = await client.get(path)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["service"] == "listing_parser"
        assert body["timestamp"]


class TestScrape:
    async def test_success(self, client, service):
        response = await client.post("/api/v1/scrape", json={"url": LISTING_URL})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert "error" not in body
        data = json.loads(body["data"])
        assert data["id"] == "12345"
        assert data["personal"]["name"] == "Анна"
        assert service.requested == [LISTING_URL]

    async def test_empty_url(self, client, service):
        response = await client.post("/api/v1/scrape", json={"url": "  "})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "URL is required"}
        assert service.requested == []

    async def test_missing_url_field(self, client):
        response = await client.post("/api/v1/scrape", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "URL is required"

    async def test_invalid_body(self, client):
        response = await client.post(
            "/api/v1/scrape", content=b"not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid request body"}

    async def test_scrape_failure(self, client, service):
        service.error = BadStatusError(LISTING_URL, 404)

        response = await client.post("/api/v1/scrape", json={"url": LISTING_URL})

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("Failed to scrape listing: ")
        assert "404" in body["error"]
        assert "data" not in body

    async def test_service_not_initialized(self):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.post("/api/v1/scrape", json={"url": LISTING_URL})

        assert response.status_code == 503
