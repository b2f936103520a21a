"""Listing crawler: proxy-rotating fetcher, heuristic extractor and flattened listing store."""

__version__ = "0.1.0"
