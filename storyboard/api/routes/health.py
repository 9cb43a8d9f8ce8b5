"""
Health check endpoints.
"""
from fastapi import APIRouter, Depends, status
from datetime import datetime, timezone

from storyboard import __version__
from storyboard.config import config
from storyboard.services.session import SessionStore
from ..dependencies import get_store
from ..schemas import HealthResponse

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health Check",
    description="Check API status and model configuration.",
)
async def health_check(store: SessionStore = Depends(get_store)) -> HealthResponse:
    """
    Health check endpoint.
    Reports "degraded" when no Google API key is configured.
    """
    google_ok = config.ai.has_google

    return HealthResponse(
        status="healthy" if google_ok else "degraded",
        service="storyboard-api",
        version=__version__,
        google_configured=google_ok,
        active_sessions=len(store),
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness Probe",
)
async def liveness() -> dict:
    """Liveness probe - always returns OK if app is running."""
    return {"status": "alive"}
