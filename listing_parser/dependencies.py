"""FastAPI dependency injection providers."""

from fastapi import HTTPException, Request, status

from listing_parser.scrapers.crawl_service import CrawlService


def get_crawl_service(request: Request) -> CrawlService:
    """Return the crawl service built during application startup."""
    service = getattr(request.app.state, "crawl_service", None)
    if service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="scraper not initialized")
    return service
