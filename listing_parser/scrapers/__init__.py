"""Fetching, extraction and link discovery for listing pages."""

from listing_parser.scrapers.base import ListingRecord
from listing_parser.scrapers.utils.proxy_client import ProxyRotationClient

__all__ = ["ListingRecord", "ProxyRotationClient"]
