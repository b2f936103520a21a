"""Single-URL scrape endpoint."""

import json

import httpx
import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from listing_parser.core.exceptions import ListingParserException
from listing_parser.dependencies import get_crawl_service
from listing_parser.schemas import ScrapeRequest, ScrapeResponse
from listing_parser.scrapers.crawl_service import CrawlService

logger = structlog.get_logger(__name__)

router = APIRouter()


def _response(status_code: int, body: ScrapeResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.post("/scrape", response_model=ScrapeResponse, response_model_exclude_none=True)
async def scrape(payload: ScrapeRequest, service: CrawlService = Depends(get_crawl_service)):
    """Scrape one listing URL and return the extracted record as JSON text.

    Nothing is written to the store.
    """
    url = payload.url.strip()
    if not url:
        return _response(status.HTTP_400_BAD_REQUEST, ScrapeResponse(success=False, error="URL is required"))

    try:
        record = await service.scrape_listing(url)
    except (ListingParserException, httpx.HTTPError) as e:
        logger.warning("api_scrape_failed", url=url, error=str(e))
        return _response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ScrapeResponse(success=False, error=f"Failed to scrape listing: {e}"),
        )

    data = json.dumps(record.to_dict(), ensure_ascii=False, separators=(",", ":"))
    return _response(status.HTTP_200_OK, ScrapeResponse(success=True, data=data))
