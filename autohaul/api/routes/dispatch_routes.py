"""
Route endpoints
===============

POST   /api/v1/routes                            -- create a route with its stops
GET    /api/v1/routes/{route_id}                 -- route with ordered stops
PATCH  /api/v1/routes/{route_id}/status          -- change route status
PATCH  /api/v1/routes/{route_id}/stops/{stop_id} -- update one stop
POST   /api/v1/routes/{route_id}/remove-job      -- take a job off the route
DELETE /api/v1/routes/{route_id}                 -- delete a route that is not running
"""

from fastapi import APIRouter, Depends, Request, Response

from autohaul.api.dependencies import get_engine
from autohaul.api.middleware import limiter
from autohaul.api.schemas import (
    RemoveJobRequest,
    RouteCreateRequest,
    RouteResponse,
    RouteStatusRequest,
    StopUpdateRequest,
)
from autohaul.config import settings
from autohaul.domain import route_progress as progress
from autohaul.domain.entities import Checklist, InvalidTransition, NotFound, Photo
from autohaul.domain.enums import ROUTE_TRANSITIONS, STOP_TRANSITIONS, RouteStatus
from autohaul.infrastructure.models import RouteModel, RouteStopModel
from autohaul.services.status_engine import StatusEngine

router = APIRouter(prefix="/routes", tags=["routes"])


async def _load_route(engine: StatusEngine, route_id: int) -> RouteModel:
    route = await engine.routes.get_by_id(route_id)
    if route is None:
        raise NotFound("Route", route_id)
    return route


@router.post(
    "",
    status_code=201,
    response_model=RouteResponse,
    summary="Create a route",
    description=(
        "Stops are numbered in the order given. Every job on a stop, plus "
        "any selected job, is dispatched on the route and the truck is "
        "marked in use."
    ),
)
@limiter.limit(settings.rate_limit)
async def create_route(
    request: Request,
    body: RouteCreateRequest,
    engine: StatusEngine = Depends(get_engine),
):
    stops = [
        RouteStopModel(sequence=position, **stop.model_dump())
        for position, stop in enumerate(body.stops, start=1)
    ]
    route = await engine.routes.create(
        RouteModel(
            driver_id=body.driver_id,
            truck_id=body.truck_id,
            planned_start_at=body.planned_start_at,
            planned_end_at=body.planned_end_at,
            stops=stops,
        )
    )
    await engine.on_route_created(route.id, body.selected_job_ids, body.truck_id)
    return await _load_route(engine, route.id)


@router.get("/{route_id}", response_model=RouteResponse, summary="Get a route")
@limiter.limit(settings.rate_limit)
async def get_route(
    request: Request,
    route_id: int,
    engine: StatusEngine = Depends(get_engine),
):
    return await _load_route(engine, route_id)


@router.patch(
    "/{route_id}/status",
    response_model=RouteResponse,
    summary="Change route status",
    responses={409: {"description": "Transition not allowed from the current status."}},
)
@limiter.limit(settings.rate_limit)
async def change_route_status(
    request: Request,
    route_id: int,
    body: RouteStatusRequest,
    engine: StatusEngine = Depends(get_engine),
):
    route = await _load_route(engine, route_id)
    old_status = route.status
    if body.status != old_status and body.status not in ROUTE_TRANSITIONS[old_status]:
        raise InvalidTransition(
            f"Cannot move route {route.id} from {old_status.value} to {body.status.value}"
        )
    await engine.on_route_status_changed(route.id, body.status, old_status)
    return await _load_route(engine, route.id)


@router.patch(
    "/{route_id}/stops/{stop_id}",
    response_model=RouteResponse,
    summary="Update a route stop",
    description=(
        "Writes the stop status, ticks checklist items and attaches photos, "
        "then applies the consequences to the route, its jobs and vehicles."
    ),
)
@limiter.limit(settings.rate_limit)
async def update_stop(
    request: Request,
    route_id: int,
    stop_id: int,
    body: StopUpdateRequest,
    engine: StatusEngine = Depends(get_engine),
):
    route = await _load_route(engine, route_id)
    if route.status == RouteStatus.CANCELLED:
        raise InvalidTransition(f"Cannot update stops of cancelled route {route.id}")
    ordered = progress.ordered_stops(route.stops)
    index = next((i for i, s in enumerate(ordered) if s.id == stop_id), None)
    if index is None:
        raise NotFound("Stop", stop_id)
    stop = ordered[index]

    if body.status != stop.status and body.status not in STOP_TRANSITIONS[stop.status]:
        raise InvalidTransition(
            f"Cannot move stop {stop.id} from {stop.status.value} to {body.status.value}"
        )

    if body.notes is not None:
        stop.notes = body.notes
    if body.checked_items:
        checklist = Checklist.from_json(stop.checklist)
        for item in checklist.items:
            if item.item in body.checked_items and not item.checked:
                item.mark()
        stop.checklist = checklist.to_json()
    if body.photos:
        stop.photos = list(stop.photos or []) + [
            Photo(**photo.model_dump()).to_dict() for photo in body.photos
        ]

    await engine.on_stop_updated(
        route.id, index, body.status, stop_type=stop.stop_type, job_id=stop.transport_job_id
    )
    return await _load_route(engine, route.id)


@router.post(
    "/{route_id}/remove-job",
    response_model=RouteResponse,
    summary="Remove a transport job from the route",
)
@limiter.limit(settings.rate_limit)
async def remove_job(
    request: Request,
    route_id: int,
    body: RemoveJobRequest,
    engine: StatusEngine = Depends(get_engine),
):
    route = await _load_route(engine, route_id)
    job = await engine.jobs.get_by_id(body.transport_job_id)
    if job is None:
        raise NotFound("TransportJob", body.transport_job_id)
    if job.route_id != route.id:
        raise InvalidTransition(f"Transport job {job.id} is not on route {route.id}")
    await engine.on_job_removed_from_route(job.id)
    return await _load_route(engine, route.id)


@router.delete(
    "/{route_id}",
    status_code=204,
    summary="Delete a route",
    responses={409: {"description": "Route is in progress."}},
)
@limiter.limit(settings.rate_limit)
async def delete_route(
    request: Request,
    route_id: int,
    engine: StatusEngine = Depends(get_engine),
):
    await engine.delete_route(route_id)
    return Response(status_code=204)
