"""
Status / observability endpoints
================================

GET /api/v1/status/enums  -- valid values and display labels per entity type
GET /api/v1/status/health -- simple health check
"""

from fastapi import APIRouter, Request

from autohaul.api.middleware import limiter
from autohaul.api.schemas import HealthResponse
from autohaul.config import settings
from autohaul.domain.enums import status_lookup

router = APIRouter(prefix="/status", tags=["status"])


@router.get("/enums", summary="Status vocabularies and display labels")
@limiter.limit(settings.rate_limit)
async def get_enums(request: Request):
    return status_lookup()


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
