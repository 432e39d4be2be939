"""
Transport job endpoints
=======================

POST   /api/v1/transport-jobs                   -- create a job for a vehicle
POST   /api/v1/transport-jobs/{job_id}/assign   -- assign driver + truck directly
POST   /api/v1/transport-jobs/{job_id}/pickup   -- record pickup evidence
POST   /api/v1/transport-jobs/{job_id}/delivery -- record delivery evidence
DELETE /api/v1/transport-jobs/{job_id}          -- delete a job that was never routed

Every handler persists the primary change and hands the cross-entity
consequences to the status engine.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from autohaul.api.dependencies import get_engine
from autohaul.api.middleware import limiter
from autohaul.api.schemas import (
    JobAssignRequest,
    JobEvidenceRequest,
    TransportJobCreateRequest,
    TransportJobResponse,
)
from autohaul.config import settings
from autohaul.domain.entities import Checklist, NotFound, Photo
from autohaul.infrastructure.models import TransportJobModel
from autohaul.services.status_engine import StatusEngine

router = APIRouter(prefix="/transport-jobs", tags=["transport-jobs"])


async def _apply_evidence(
    engine: StatusEngine, job_id: int, body: Optional[JobEvidenceRequest], stage: str
) -> None:
    """Write submitted checklist ticks, photos and bill of lading onto the job.

    *stage* is ``"pickup"`` or ``"delivery"`` and picks the checklist and
    photo columns.  Items are matched by text; unknown items are ignored.
    """
    job = await engine.jobs.get_by_id(job_id)
    if job is None:
        raise NotFound("TransportJob", job_id)
    if body is None:
        return

    if body.checklist:
        ticks = {tick.item: tick for tick in body.checklist}
        checklist = Checklist.from_json(getattr(job, f"{stage}_checklist"))
        for item in checklist.items:
            tick = ticks.get(item.item)
            if tick is None:
                continue
            if not item.checked:
                item.mark()
            if tick.notes is not None:
                item.notes = tick.notes
        setattr(job, f"{stage}_checklist", checklist.to_json())
    if body.photos:
        photos = list(getattr(job, f"{stage}_photos") or [])
        photos += [Photo(**photo.model_dump()).to_dict() for photo in body.photos]
        setattr(job, f"{stage}_photos", photos)
    if body.bill_of_lading is not None:
        job.bill_of_lading = body.bill_of_lading


@router.post(
    "",
    status_code=201,
    response_model=TransportJobResponse,
    summary="Create a transport job",
    responses={409: {"description": "Vehicle already has an active transport job."}},
)
@limiter.limit(settings.rate_limit)
async def create_transport_job(
    request: Request,
    body: TransportJobCreateRequest,
    engine: StatusEngine = Depends(get_engine),
):
    if await engine.vehicles.get_by_id(body.vehicle_id) is None:
        raise NotFound("Vehicle", body.vehicle_id)
    job = await engine.jobs.create(TransportJobModel(**body.model_dump()))
    await engine.on_job_created(job.id, body.vehicle_id)
    return await engine.jobs.reload(job.id)


@router.post(
    "/{job_id}/assign",
    response_model=TransportJobResponse,
    summary="Assign a driver and truck",
)
@limiter.limit(settings.rate_limit)
async def assign_transport_job(
    request: Request,
    job_id: int,
    body: JobAssignRequest,
    engine: StatusEngine = Depends(get_engine),
):
    await engine.on_job_assigned(job_id, body.driver_id, body.truck_id)
    return await engine.jobs.reload(job_id)


@router.post(
    "/{job_id}/pickup",
    response_model=TransportJobResponse,
    summary="Record vehicle pickup",
    description="Stores pickup checklist ticks and photos; the first submission starts transit.",
)
@limiter.limit(settings.rate_limit)
async def record_pickup(
    request: Request,
    job_id: int,
    body: Optional[JobEvidenceRequest] = None,
    engine: StatusEngine = Depends(get_engine),
):
    await _apply_evidence(engine, job_id, body, "pickup")
    await engine.on_job_pickup_recorded(job_id)
    return await engine.jobs.reload(job_id)


@router.post(
    "/{job_id}/delivery",
    response_model=TransportJobResponse,
    summary="Record vehicle delivery",
    description=(
        "Stores delivery checklist ticks, photos and the bill of lading, then "
        "completes the job and frees the truck if nothing else keeps it busy."
    ),
)
@limiter.limit(settings.rate_limit)
async def record_delivery(
    request: Request,
    job_id: int,
    body: Optional[JobEvidenceRequest] = None,
    engine: StatusEngine = Depends(get_engine),
):
    await _apply_evidence(engine, job_id, body, "delivery")
    await engine.on_job_drop_recorded(job_id)
    return await engine.jobs.reload(job_id)


@router.delete(
    "/{job_id}",
    status_code=204,
    summary="Delete a transport job",
    responses={409: {"description": "Job is on a route."}},
)
@limiter.limit(settings.rate_limit)
async def delete_transport_job(
    request: Request,
    job_id: int,
    engine: StatusEngine = Depends(get_engine),
):
    await engine.delete_job(job_id)
    return Response(status_code=204)
