"""Single-URL scrape schemas."""

from typing import Optional

from pydantic import BaseModel


class ScrapeRequest(BaseModel):
    url: str = ""


class ScrapeResponse(BaseModel):
    """Scrape result envelope.

    ``data`` carries the extracted listing serialized as JSON text.
    """

    success: bool
    data: Optional[str] = None
    error: Optional[str] = None
