"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from listing_parser import __version__
from listing_parser.schemas import HealthCheckResponse

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Return service liveness. Does not touch the store or the network."""
    return HealthCheckResponse(
        status="ok",
        service="listing_parser",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
