"""Page fetching: proxy-routed GET, gzip, legacy Cyrillic transcoding, HTML parsing."""

import gzip
import zlib
from typing import List, Mapping, Optional

import httpx
import structlog
from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from listing_parser.core.exceptions import (
    BadStatusError,
    DecompressionError,
    DocumentParseError,
    FetchError,
)
from listing_parser.scrapers.utils.proxy_client import ProxyRotationClient

logger = structlog.get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
LEGACY_CHARSET_MARKERS = (b"windows-1251", b"cp1251")
GALLERY_FORM = "limit=100&offset=0"


def decompress_body(body: bytes, headers: Mapping[str, str], url: str = "") -> bytes:
    """Gunzip a body that declares gzip and still carries the gzip header.

    httpx already decodes Content-Encoding transparently, so in most cases
    the body arrives decoded and is returned untouched.

    Raises:
        DecompressionError: If the gzip stream is corrupt
    """
    encoding = headers.get("content-encoding", "").lower()
    if "gzip" not in encoding or not body.startswith(GZIP_MAGIC):
        return body
    try:
        return gzip.decompress(body)
    except (OSError, EOFError, zlib.error) as e:
        raise DecompressionError(url, str(e)) from e


def is_legacy_cyrillic(body: bytes, headers: Mapping[str, str]) -> bool:
    """Detect windows-1251 from the Content-Type charset or a marker in the body."""
    content_type = headers.get("content-type", "").lower().encode("ascii", "ignore")
    lowered = body.lower()
    return any(marker in content_type or marker in lowered for marker in LEGACY_CHARSET_MARKERS)


def transcode_legacy(body: bytes) -> bytes:
    """Re-encode a windows-1251 byte stream as UTF-8.

    Raises:
        UnicodeDecodeError: If the body holds bytes undefined in windows-1251
    """
    return body.decode("windows-1251").encode("utf-8")


def repair_text(body: bytes) -> str:
    """Decode as UTF-8, dropping invalid sequences instead of failing."""
    return body.decode("utf-8", errors="ignore")


class PageFetcher:
    """Turns a URL into a parsed BeautifulSoup document.

    Non-200 responses, corrupt gzip bodies and parser rejections are fatal
    for the fetch; encoding problems are repaired on a best-effort basis.
    Retries happen only inside the proxy client.
    """

    def __init__(self, client: ProxyRotationClient, photo_base_url: str = ""):
        """Initialize fetcher.

        Args:
            client: Shared proxy rotation client
            photo_base_url: Prefix for gallery image paths returned by fetch_gallery
        """
        self.client = client
        self.photo_base_url = photo_base_url.rstrip("/")
        self.logger = logger.bind(component="page_fetcher")

    async def fetch(self, url: str) -> BeautifulSoup:
        """Fetch and parse a page.

        Args:
            url: Page URL

        Returns:
            Parsed document

        Raises:
            ExhaustedError: If no route could reach the page
            BadStatusError: On any non-200 status
            DecompressionError: If the gzip body is corrupt
            DocumentParseError: If the HTML parser rejects the body
        """
        try:
            response = await self.client.get(url)
        except httpx.DecodingError as e:
            raise DecompressionError(url, str(e)) from e

        if response.status_code != 200:
            raise BadStatusError(url, response.status_code)

        body = decompress_body(response.content, response.headers, url)
        return self.parse(body, response.headers, url)

    def parse(self, body: bytes, headers: Optional[Mapping[str, str]] = None, url: str = "") -> BeautifulSoup:
        """Transcode, repair and parse a raw body."""
        headers = headers or {}
        if is_legacy_cyrillic(body, headers):
            try:
                body = transcode_legacy(body)
            except UnicodeDecodeError as e:
                self.logger.warning("transcoding_failed", url=url, error=str(e))

        text = repair_text(body)
        try:
            return BeautifulSoup(text, "html.parser")
        except ParserRejectedMarkup as e:
            raise DocumentParseError(url, str(e)) from e

    async def fetch_gallery(self, url: str) -> List[str]:
        """Fetch the listing's photo gallery through its JSON endpoint.

        The listing URL answers a form POST with a JSON array of image
        objects; the full-size path is under "BIMG".

        Returns:
            Absolute photo URLs in gallery order

        Raises:
            ExhaustedError: If no route could reach the endpoint
            BadStatusError: On any non-200 status
            FetchError: If the body is not a JSON array
        """
        response = await self.client.post(url, GALLERY_FORM, "application/x-www-form-urlencoded")
        if response.status_code != 200:
            raise BadStatusError(url, response.status_code)

        try:
            items = response.json()
        except ValueError as e:
            raise FetchError(url, f"failed to parse JSON: {e}") from e
        if not isinstance(items, list):
            raise FetchError(url, "gallery response is not a JSON array")

        photos = []
        for item in items:
            if isinstance(item, dict) and item.get("BIMG"):
                photos.append(self.photo_base_url + str(item["BIMG"]))
        return photos
