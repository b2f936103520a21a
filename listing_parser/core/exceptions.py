"""Custom exception classes for the listing parser."""

from typing import List, Optional


class ListingParserException(Exception):
    """Base exception for all listing parser errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class InvalidProxyURL(ListingParserException):
    """Raised when a configured proxy endpoint is malformed."""

    def __init__(self, proxy: str, reason: str):
        self.proxy = proxy
        super().__init__(f"invalid proxy URL {proxy}: {reason}")


class TransportError(ListingParserException):
    """Raised when every retry against one proxy (or the direct route) failed."""

    def __init__(self, proxy: Optional[str], attempts: int, cause: BaseException):
        self.proxy = proxy
        self.attempts = attempts
        self.cause = cause
        proxy_info = f"proxy {proxy}" if proxy else "no proxy"
        super().__init__(f"request failed with {proxy_info} after {attempts} attempts: {cause}")


class ExhaustedError(ListingParserException):
    """Raised when all proxies and the optional direct fallback failed."""

    def __init__(self, attempted: List[Optional[str]], last_error: Optional[BaseException]):
        self.attempted = attempted
        self.last_error = last_error
        if last_error is not None:
            message = f"all proxy attempts failed, last error: {last_error}"
        else:
            message = "no working proxy found and fallback disabled"
        super().__init__(message)


class FetchError(ListingParserException):
    """Raised when a page cannot be turned into a document."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"failed to fetch {url}: {message}")


class BadStatusError(FetchError):
    """Raised on any non-200 response."""

    def __init__(self, url: str, status_code: int):
        self.status_code = status_code
        super().__init__(url, f"received non-200 status code: {status_code}")


class DecompressionError(FetchError):
    """Raised when a gzip body cannot be decompressed."""

    def __init__(self, url: str, reason: str):
        super().__init__(url, f"failed to decompress gzip content: {reason}")


class DocumentParseError(FetchError):
    """Raised when the HTML parser rejects the body."""

    def __init__(self, url: str, reason: str):
        super().__init__(url, f"failed to parse HTML: {reason}")


class StoreError(ListingParserException):
    """Raised when the storage sink rejects a write."""

    def __init__(self, listing_id: str, message: str):
        self.listing_id = listing_id
        super().__init__(f"failed to store listing {listing_id}: {message}")
