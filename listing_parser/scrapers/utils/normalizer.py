"""Normalization utilities for prices, free text and URLs."""

import re
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlparse

# Thousands separators and currency markers seen in price cells
_PRICE_NOISE = re.compile(r"[\s\u00a0\u202f\u2009]|₽|руб\.?|р\.|rub", re.IGNORECASE)

# Bare price tokens: 5..100 reads as thousands shorthand ("12" means 12 000)
THOUSANDS_SHORTHAND_RANGE = (5, 100)
FULL_PRICE_RANGE = (1000, 100000)

SANE_LENGTH_RANGE = (2, 100)

_ASCII_DIGITS = re.compile(r"[0-9]+")


class PriceNormalizer:
    """Price string cleanup."""

    @staticmethod
    def clean_price(text: Optional[str]) -> int:
        """Parse a price cell into an integer.

        Strips whitespace separators (including NBSP, narrow NBSP and thin
        space) and currency glyphs, then requires the remainder to be a
        plain ASCII integer.

        Args:
            text: Raw price text (e.g., "8 000 ₽", "5000 руб.")

        Returns:
            Parsed price, or 0 if the text is not a price
        """
        if not text:
            return 0
        cleaned = _PRICE_NOISE.sub("", text).rstrip(".")
        if not _ASCII_DIGITS.fullmatch(cleaned):
            return 0
        return int(cleaned)

    @staticmethod
    def normalize_price_token(text: Optional[str]) -> Optional[int]:
        """Apply the thousands-shorthand heuristic to a free-standing token.

        Values in [5, 100] are multiplied by 1000, values in [1000, 100000]
        are taken as is, anything else is discarded.

        Examples:
            "12"    -> 12000
            "8 000" -> 8000
            "500"   -> None
        """
        value = PriceNormalizer.clean_price(text)
        low, high = THOUSANDS_SHORTHAND_RANGE
        if low <= value <= high:
            return value * 1000
        low, high = FULL_PRICE_RANGE
        if low <= value <= high:
            return value
        return None


def clean_text(text: Optional[str]) -> str:
    """Collapse runs of whitespace and trim."""
    if not text:
        return ""
    return " ".join(text.split())


def is_sane_length(text: str, bounds: tuple = SANE_LENGTH_RANGE) -> bool:
    """Check text length against an inclusive (low, high) band."""
    low, high = bounds
    return low <= len(text) <= high


def dedupe_preserving_order(items: Iterable[str]) -> List[str]:
    """Drop repeated strings, keeping the first occurrence."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def absolutize_url(href: str, base_url: str) -> str:
    """Resolve href against base_url; protocol-relative links get https."""
    href = href.strip()
    if href.startswith("//"):
        return "https:" + href
    return urljoin(base_url, href)


def url_path(url: str) -> str:
    """Path component of a URL, lower-cased."""
    return urlparse(url).path.lower()
