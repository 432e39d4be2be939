"""
Vehicle endpoints
=================

POST /api/v1/vehicles                    -- register a purchased vehicle
POST /api/v1/vehicles/{vehicle_id}/intake -- mark intake completed
"""

from fastapi import APIRouter, Depends, Request

from autohaul.api.dependencies import get_engine
from autohaul.api.middleware import limiter
from autohaul.api.schemas import VehicleCreateRequest, VehicleResponse
from autohaul.config import settings
from autohaul.infrastructure.models import VehicleModel
from autohaul.services.status_engine import StatusEngine

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.post(
    "",
    status_code=201,
    response_model=VehicleResponse,
    summary="Register a purchased vehicle",
)
@limiter.limit(settings.rate_limit)
async def create_vehicle(
    request: Request,
    body: VehicleCreateRequest,
    engine: StatusEngine = Depends(get_engine),
):
    return await engine.vehicles.create(VehicleModel(**body.model_dump()))


@router.post(
    "/{vehicle_id}/intake",
    response_model=VehicleResponse,
    summary="Record completed intake",
)
@limiter.limit(settings.rate_limit)
async def record_intake(
    request: Request,
    vehicle_id: int,
    engine: StatusEngine = Depends(get_engine),
):
    await engine.on_vehicle_intake(vehicle_id)
    return await engine.vehicles.reload(vehicle_id)
