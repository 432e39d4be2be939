"""
Truck endpoints
===============

POST   /api/v1/trucks            -- register a truck
DELETE /api/v1/trucks/{truck_id} -- delete a truck that is not in use
"""

from fastapi import APIRouter, Depends, Request, Response

from autohaul.api.dependencies import get_engine
from autohaul.api.middleware import limiter
from autohaul.api.schemas import TruckCreateRequest, TruckResponse
from autohaul.config import settings
from autohaul.infrastructure.models import TruckModel
from autohaul.services.status_engine import StatusEngine

router = APIRouter(prefix="/trucks", tags=["trucks"])


@router.post("", status_code=201, response_model=TruckResponse, summary="Register a truck")
@limiter.limit(settings.rate_limit)
async def create_truck(
    request: Request,
    body: TruckCreateRequest,
    engine: StatusEngine = Depends(get_engine),
):
    return await engine.trucks.create(TruckModel(**body.model_dump()))


@router.delete(
    "/{truck_id}",
    status_code=204,
    summary="Delete a truck",
    responses={409: {"description": "Truck is currently in use."}},
)
@limiter.limit(settings.rate_limit)
async def delete_truck(
    request: Request,
    truck_id: int,
    engine: StatusEngine = Depends(get_engine),
):
    await engine.delete_truck(truck_id)
    return Response(status_code=204)
