"""Scraper utilities."""

from listing_parser.scrapers.utils.normalizer import PriceNormalizer
from listing_parser.scrapers.utils.proxy_client import ProxyRotationClient
from listing_parser.scrapers.utils.user_agents import get_random_user_agent

__all__ = [
    "PriceNormalizer",
    "ProxyRotationClient",
    "get_random_user_agent",
]
