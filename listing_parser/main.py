"""Listing parser -- FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from listing_parser import __version__
from listing_parser.api.v1 import health
from listing_parser.api.v1.router import api_v1_router
from listing_parser.config import settings
from listing_parser.core.logging import configure_logging
from listing_parser.db.session import async_session_factory
from listing_parser.scrapers.factory import ComponentFactory

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: build the scraper on startup, close it on shutdown."""
    configure_logging(settings.LOG_LEVEL, json=settings.LOG_JSON)
    logger.info("api_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    factory = ComponentFactory(settings)
    app.state.crawl_service = factory.create_crawl_service(async_session_factory)

    yield

    logger.info("api_stopping")
    await factory.aclose()


app = FastAPI(
    title="Listing Parser API",
    description="Single-URL listing extraction",
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def invalid_body_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Invalid request body"},
    )


# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")

# Unversioned liveness probe
app.add_api_route("/health", health.health_check, methods=["GET"], tags=["health"])
