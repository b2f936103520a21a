"""Pydantic schemas for API request/response validation."""

from listing_parser.schemas.health import HealthCheckResponse
from listing_parser.schemas.scrape import ScrapeRequest, ScrapeResponse

__all__ = [
    "HealthCheckResponse",
    "ScrapeRequest",
    "ScrapeResponse",
]
