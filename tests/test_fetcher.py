"""Tests for page fetching, decompression and transcoding."""

import gzip
import json

import httpx
import pytest
from conftest import LISTING_URL, mock_client_factory

from listing_parser.core.exceptions import BadStatusError, DecompressionError, FetchError
from listing_parser.scrapers.fetcher import (
    GALLERY_FORM,
    PageFetcher,
    decompress_body,
    is_legacy_cyrillic,
    repair_text,
    transcode_legacy,
)
from listing_parser.scrapers.utils.proxy_client import ProxyRotationClient


def make_fetcher(handler, photo_base_url: str = "") -> PageFetcher:
    client = ProxyRotationClient([], client_factory=mock_client_factory(lambda proxy, request: handler(request)))
    return PageFetcher(client, photo_base_url=photo_base_url)


# ============================================================================
# TESTS: BODY HELPERS
# ============================================================================


class TestBodyHelpers:
    def test_gzip_body_is_decompressed(self):
        body = gzip.compress(b"<p>ok</p>")

        assert decompress_body(body, {"content-encoding": "gzip"}) == b"<p>ok</p>"

    def test_body_without_gzip_header_is_untouched(self):
        assert decompress_body(b"<p>ok</p>", {"content-encoding": "gzip"}) == b"<p>ok</p>"
        assert decompress_body(b"<p>ok</p>", {}) == b"<p>ok</p>"

    def test_corrupt_gzip_raises(self):
        with pytest.raises(DecompressionError):
            decompress_body(b"\x1f\x8bnot really gzip", {"content-encoding": "gzip"}, LISTING_URL)

    def test_legacy_charset_detection(self):
        assert is_legacy_cyrillic(b"<meta charset=windows-1251>", {})
        assert is_legacy_cyrillic(b"<p>x</p>", {"content-type": "text/html; charset=windows-1251"})
        assert not is_legacy_cyrillic(b"<meta charset=utf-8>", {"content-type": "text/html"})

    def test_transcode_legacy(self):
        assert transcode_legacy("Привет".encode("cp1251")) == "Привет".encode("utf-8")

    def test_repair_drops_invalid_sequences(self):
        assert repair_text(b"ok\xffok") == "okok"


# ============================================================================
# TESTS: FETCH
# ============================================================================


class TestFetch:
    async def test_fetch_parses_utf8(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, html="<title>Анна</title>"))

        soup = await fetcher.fetch(LISTING_URL)

        assert soup.title.get_text() == "Анна"

    async def test_fetch_transcodes_windows_1251(self):
        body = "<html><head><meta charset=windows-1251></head><body><p>Привет</p></body></html>".encode("cp1251")
        fetcher = make_fetcher(
            lambda request: httpx.Response(
                200, content=body, headers={"Content-Type": "text/html; charset=windows-1251"}
            )
        )

        soup = await fetcher.fetch(LISTING_URL)

        assert soup.p.get_text() == "Привет"

    async def test_fetch_gzip_encoded_response(self):
        fetcher = make_fetcher(
            lambda request: httpx.Response(
                200, content=gzip.compress("<p>Сжато</p>".encode()), headers={"Content-Encoding": "gzip"}
            )
        )

        soup = await fetcher.fetch(LISTING_URL)

        assert soup.p.get_text() == "Сжато"

    async def test_non_200_is_an_error(self):
        fetcher = make_fetcher(lambda request: httpx.Response(404))

        with pytest.raises(BadStatusError) as exc_info:
            await fetcher.fetch(LISTING_URL)

        assert exc_info.value.status_code == 404
        assert "non-200" in str(exc_info.value)

    def test_failed_transcoding_is_repaired(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200))

        # 0x98 is undefined in windows-1251
        soup = fetcher.parse(b"<p>windows-1251 ok\x98</p>", {}, LISTING_URL)

        assert soup.p.get_text() == "windows-1251 ok"


# ============================================================================
# TESTS: GALLERY
# ============================================================================


class TestGallery:
    async def test_gallery_photos(self):
        seen = []

        def handler(request):
            seen.append(request)
            items = [{"BIMG": "/photos/1.jpg"}, {"SIMG": "/photos/s.jpg"}, {"BIMG": "/photos/2.jpg"}]
            return httpx.Response(200, json=items)

        fetcher = make_fetcher(handler, photo_base_url="https://a.intimcity.gold/")

        photos = await fetcher.fetch_gallery(LISTING_URL)

        assert photos == [
            "https://a.intimcity.gold/photos/1.jpg",
            "https://a.intimcity.gold/photos/2.jpg",
        ]
        assert seen[0].method == "POST"
        assert seen[0].content == GALLERY_FORM.encode()
        assert seen[0].headers["Content-Type"] == "application/x-www-form-urlencoded"

    async def test_gallery_not_json(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text="<html></html>"))

        with pytest.raises(FetchError):
            await fetcher.fetch_gallery(LISTING_URL)

    async def test_gallery_not_a_list(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text=json.dumps({"BIMG": "/x.jpg"})))

        with pytest.raises(FetchError):
            await fetcher.fetch_gallery(LISTING_URL)

    async def test_gallery_bad_status(self):
        fetcher = make_fetcher(lambda request: httpx.Response(500))

        with pytest.raises(BadStatusError):
            await fetcher.fetch_gallery(LISTING_URL)
