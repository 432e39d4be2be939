"""
Status Transition Engine
========================

Keeps Vehicle, TransportJob, Truck and Route statuses mutually consistent.
Request handlers persist the primary change first and then call the
matching ``on_*`` method; the engine computes every cross-entity effect
from the *current persisted state* and writes it.

Write discipline
----------------
* Every entity write runs in its own SAVEPOINT.  There is no transaction
  spanning entities: a failing side effect is rolled back on its own,
  logged and skipped, and whatever was already written stays written.
* Each method recomputes targets instead of applying deltas, so re-running
  the same event after a partial failure converges on the same end state.
* Status moves go through the progression guards in
  :mod:`autohaul.domain.enums`: forward only, except explicit reverts
  (route cancelled, job removed from route).  A vehicle follows its job,
  so when a job move is refused the vehicle is left alone too.

Errors
------
``NotFound`` for the triggering entity and ``InvalidTransition`` for a
violated precondition propagate to the caller.  ``NotFound`` and database
errors while applying side effects are logged and swallowed.  A failed
write of the primary change raises ``PersistenceFailure``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from autohaul.config import settings
from autohaul.domain import route_progress as progress
from autohaul.domain.checklists import default_checklist, initialize_checklist
from autohaul.domain.entities import InvalidTransition, NotFound, PersistenceFailure
from autohaul.domain.enums import (
    JOB_TERMINAL,
    RouteStatus,
    StopStatus,
    StopType,
    TransportJobStatus,
    TruckStatus,
    VehicleStatus,
    job_status_change_allowed,
    vehicle_status_change_allowed,
)
from autohaul.infrastructure.models import RouteModel, TransportJobModel
from autohaul.infrastructure.repositories import (
    RouteRepository,
    TransportJobRepository,
    TruckRepository,
    VehicleRepository,
)
from autohaul.infrastructure.sequences import DailySequence

logger = logging.getLogger(__name__)

# Trucks parked for these reasons keep their status when a job or route
# lets go of them; only the driver link is dropped.
_PARKED = (TruckStatus.MAINTENANCE, TruckStatus.OUT_OF_SERVICE)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StatusEngine:
    def __init__(
        self,
        session: AsyncSession,
        job_numbers: Optional[DailySequence] = None,
        route_numbers: Optional[DailySequence] = None,
        dispatch_mode: Optional[str] = None,
    ):
        self.session = session
        self.vehicles = VehicleRepository(session)
        self.trucks = TruckRepository(session)
        self.jobs = TransportJobRepository(session)
        self.routes = RouteRepository(session)
        self.job_numbers = job_numbers
        self.route_numbers = route_numbers
        self.dispatch_mode = dispatch_mode or settings.dispatch_mode

    # ── Vehicle ───────────────────────────────────────────────────────

    async def on_vehicle_intake(self, vehicle_id: int) -> None:
        vehicle = await self._require(self.vehicles, "Vehicle", vehicle_id)
        await self._move_vehicle(vehicle.id, VehicleStatus.INTAKE_COMPLETED, primary=True)

    # ── Transport jobs (both variants) ────────────────────────────────

    async def on_job_created(self, job_id: int, vehicle_id: int) -> None:
        """Link a fresh job to its vehicle and put both in their start state.

        Route mode: job NEEDS_DISPATCH, vehicle READY_FOR_TRANSPORT.
        Direct mode: job NEEDS_DISPATCH ("Pending"), vehicle IN_TRANSPORT
        because it is already earmarked for a driver.
        """
        job = await self._require(self.jobs, "TransportJob", job_id)
        vehicle = await self._require(self.vehicles, "Vehicle", vehicle_id)
        if job.vehicle_id != vehicle.id:
            raise InvalidTransition(
                f"Transport job {job.id} belongs to vehicle {job.vehicle_id}, not {vehicle.id}"
            )
        if vehicle.transport_job_id not in (None, job.id):
            other = await self.jobs.get_by_id(vehicle.transport_job_id)
            if other is not None and other.status not in JOB_TERMINAL:
                raise InvalidTransition(
                    f"Vehicle {vehicle.id} already has active transport job {other.id}"
                )

        async with self._primary(f"transport job {job.id}"):
            if job.job_number is None and self.job_numbers is not None:
                job.job_number = await self.job_numbers.next()
            if not job.pickup_checklist:
                job.pickup_checklist = default_checklist(StopType.PICKUP).to_json()
            if not job.delivery_checklist:
                job.delivery_checklist = default_checklist(StopType.DROP).to_json()

        async with self._side_effect("vehicle job link", vehicle.id):
            vehicle.transport_job_id = job.id

        vehicle_target = (
            VehicleStatus.IN_TRANSPORT
            if self.dispatch_mode == "direct"
            else VehicleStatus.READY_FOR_TRANSPORT
        )
        await self._move_job(job.id, TransportJobStatus.NEEDS_DISPATCH, vehicle_target)

    async def delete_job(self, job_id: int) -> None:
        """Delete a job that is not on any route, whatever that route's status.

        A cancelled or completed route still lists the job on its stops, so
        the job has to be taken off the route (or the route deleted) first.
        """
        job = await self._require(self.jobs, "TransportJob", job_id)
        if job.route_id is not None:
            raise InvalidTransition(
                "Cannot delete transport job that is part of a route. "
                "Please remove it from the route first."
            )
        truck_id, vehicle_id = job.truck_id, job.vehicle_id

        async with self._primary(f"deletion of transport job {job_id}"):
            await self.jobs.delete(job)
        logger.info("Transport job %s deleted", job_id)

        if truck_id is not None:
            await self._release_truck_if_idle(truck_id, exclude_job_id=job_id)
        async with self._side_effect("vehicle job unlink", vehicle_id):
            vehicle = await self._require(self.vehicles, "Vehicle", vehicle_id)
            if vehicle.transport_job_id == job_id:
                vehicle.transport_job_id = None

    # ── Direct-assignment variant ─────────────────────────────────────

    async def on_job_assigned(self, job_id: int, driver_id: int, truck_id: int) -> None:
        job = await self._require(self.jobs, "TransportJob", job_id)
        truck = await self._require(self.trucks, "Truck", truck_id)
        if job.status in JOB_TERMINAL:
            raise InvalidTransition(
                f"Cannot assign transport job {job.id} in status {job.status.value}"
            )
        if await self.routes.is_active(job.route_id):
            raise InvalidTransition(
                f"Transport job {job.id} is dispatched on route {job.route_id}"
            )
        previous_truck_id = job.truck_id

        async with self._primary(f"assignment of transport job {job.id}"):
            job.driver_id = driver_id
            job.truck_id = truck.id

        await self._move_job(job.id, TransportJobStatus.IN_TRANSIT, VehicleStatus.IN_TRANSPORT)
        await self._occupy_truck(truck.id, driver_id)
        if previous_truck_id not in (None, truck.id):
            await self._release_truck_if_idle(previous_truck_id, exclude_job_id=job.id)

    async def on_job_pickup_recorded(self, job_id: int) -> None:
        job = await self._require(self.jobs, "TransportJob", job_id)
        self._refuse_cancelled(job, "record pickup for")
        if job.status not in JOB_TERMINAL:
            async with self._primary(f"pickup of transport job {job.id}"):
                if job.actual_pickup_at is None:
                    job.actual_pickup_at = _now()
        await self._move_job(job.id, TransportJobStatus.IN_TRANSIT, VehicleStatus.IN_TRANSPORT)

    async def on_job_drop_recorded(self, job_id: int) -> None:
        job = await self._require(self.jobs, "TransportJob", job_id)
        self._refuse_cancelled(job, "record delivery for")
        async with self._primary(f"delivery of transport job {job.id}"):
            if job.actual_delivery_at is None:
                job.actual_delivery_at = _now()
        truck_id = job.truck_id
        await self._move_job(job.id, TransportJobStatus.DELIVERED, VehicleStatus.DELIVERED)
        if truck_id is not None:
            await self._release_truck_if_idle(truck_id, exclude_job_id=job.id)

    # ── Route variant ─────────────────────────────────────────────────

    async def on_route_created(
        self,
        route_id: int,
        selected_job_ids: Iterable[int] = (),
        truck_id: Optional[int] = None,
    ) -> None:
        route = await self._require(self.routes, "Route", route_id)
        truck = await self._require(self.trucks, "Truck", truck_id or route.truck_id)
        progress.validate_stops(route.stops)

        job_ids = progress.job_ids_on_stops(route.stops)
        for job_id in selected_job_ids:
            if job_id not in job_ids:
                job_ids.append(job_id)
        await self._check_routable(job_ids, route.id)

        async with self._primary(f"route {route.id}"):
            if route.route_number is None and self.route_numbers is not None:
                route.route_number = await self.route_numbers.next()
            if route.truck_id != truck.id:
                route.truck_id = truck.id
            if route.status is None:
                route.status = RouteStatus.PLANNED
            for stop in route.stops:
                if stop.status is None:
                    stop.status = StopStatus.PENDING
                initialize_checklist(stop)

        for job_id in job_ids:
            await self._move_job(
                job_id,
                TransportJobStatus.DISPATCHED,
                VehicleStatus.READY_FOR_TRANSPORT,
                route_id=route.id,
            )
        await self._occupy_truck(truck.id, route.driver_id)

    async def on_route_status_changed(
        self,
        route_id: int,
        new_status: RouteStatus,
        old_status: Optional[RouteStatus] = None,
    ) -> None:
        new_status = RouteStatus(new_status)
        old_status = RouteStatus(old_status) if old_status is not None else None
        route = await self._require(self.routes, "Route", route_id)
        if new_status == old_status:
            logger.debug("Route %s status unchanged (%s)", route_id, new_status.value)
            return

        async with self._primary(f"route {route.id} status"):
            route.status = new_status
            if new_status == RouteStatus.IN_PROGRESS:
                if route.actual_start_at is None:
                    route.actual_start_at = _now()
                started = progress.start_first_stop(route.stops)
                if started is not None:
                    logger.info("Route %s: stop %s started", route.id, started.sequence)
            elif new_status == RouteStatus.COMPLETED and route.actual_end_at is None:
                route.actual_end_at = _now()

        job_ids = await self._route_job_ids(route)
        logger.info(
            "Route %s %s -> %s (%d jobs)",
            route.id,
            old_status.value if old_status else None,
            new_status.value,
            len(job_ids),
        )

        if new_status == RouteStatus.IN_PROGRESS:
            for job_id in job_ids:
                await self._move_job(
                    job_id, TransportJobStatus.IN_TRANSIT, VehicleStatus.IN_TRANSPORT
                )
            await self._occupy_truck(route.truck_id, route.driver_id)
        elif new_status == RouteStatus.COMPLETED:
            await self._complete_route(route, job_ids)
        elif new_status == RouteStatus.CANCELLED:
            for job_id in job_ids:
                await self._move_job(
                    job_id,
                    TransportJobStatus.NEEDS_DISPATCH,
                    VehicleStatus.READY_FOR_TRANSPORT,
                    revert=True,
                )
            await self._release_truck(route.truck_id)
        elif new_status == RouteStatus.PLANNED:
            await self._occupy_truck(route.truck_id, route.driver_id)

    async def on_stop_updated(
        self,
        route_id: int,
        stop_index: int,
        new_stop_status: StopStatus,
        stop_type: Optional[StopType] = None,
        job_id: Optional[int] = None,
    ) -> None:
        """Apply a stop status change and everything that follows from it.

        *stop_index* is the zero-based position in sequence order.  The
        stop's stored type and job reference win over the arguments, which
        only serve as a cross-check.
        """
        new_stop_status = StopStatus(new_stop_status)
        route = await self._require(self.routes, "Route", route_id)
        self._refuse_cancelled_route(route)
        stop = progress.stop_at(route.stops, stop_index)
        if stop is None:
            raise NotFound("Stop", f"{route_id}[{stop_index}]")
        if (stop_type is not None and StopType(stop_type) != stop.stop_type) or (
            job_id is not None and job_id != stop.transport_job_id
        ):
            logger.warning(
                "Route %s stop %s: caller passed %s/%s, stored %s/%s",
                route.id, stop.sequence, stop_type, job_id,
                stop.stop_type.value, stop.transport_job_id,
            )
        stop_type, job_id = stop.stop_type, stop.transport_job_id

        async with self._primary(f"route {route.id} stop {stop.sequence}"):
            stop.status = new_stop_status
            if new_stop_status == StopStatus.COMPLETED and stop.actual_at is None:
                stop.actual_at = _now()
            if new_stop_status == StopStatus.IN_PROGRESS:
                progress.enforce_single_in_progress(route.stops, keep=stop)
            elif progress.is_finished(new_stop_status):
                nxt = progress.advance_to_next_stop(route.stops)
                if nxt is not None:
                    logger.info("Route %s: advanced to stop %s", route.id, nxt.sequence)

        if new_stop_status == StopStatus.COMPLETED and job_id is not None:
            if job_id not in await self._route_job_ids(route):
                logger.warning(
                    "Route %s stop %s: transport job %s is no longer on this route",
                    route.id, stop.sequence, job_id,
                )
            elif stop_type == StopType.DROP:
                if progress.drop_stops_completed_for_job(route.stops, job_id):
                    await self._move_job(
                        job_id, TransportJobStatus.DELIVERED, VehicleStatus.DELIVERED
                    )
            elif stop_type == StopType.PICKUP:
                await self._move_vehicle_of_job(job_id, VehicleStatus.IN_TRANSPORT)

        await self._reconcile_route(route)

    async def on_job_removed_from_route(self, job_id: int) -> None:
        """Take a job off its route, renumber the remaining stops, revert statuses."""
        job = await self._require(self.jobs, "TransportJob", job_id)
        if job.route_id is None:
            raise InvalidTransition(f"Transport job {job.id} is not on a route")
        route = await self.routes.get_by_id(job.route_id)

        if route is not None:
            async with self._primary(f"route {route.id} stops"):
                kept, removed = progress.remove_job_stops(route.stops, job.id)
                for stop in removed:
                    route.stops.remove(stop)
                if removed and route.status == RouteStatus.IN_PROGRESS:
                    progress.advance_to_next_stop(kept)
            logger.info(
                "Transport job %s removed from route %s (%d stops dropped)",
                job.id, route.id, len(removed),
            )

        await self._move_job(
            job.id,
            TransportJobStatus.NEEDS_DISPATCH,
            VehicleStatus.READY_FOR_TRANSPORT,
            revert=True,
            route_id=None,
        )
        if route is not None and route.stops:
            await self._reconcile_route(route)

    async def delete_route(self, route_id: int) -> None:
        """Delete a route that is not running and let go of its jobs and truck.

        Jobs still on the route revert to NEEDS_DISPATCH (delivered ones stay
        delivered) and lose their route link.  The truck is released only if
        the route still held it and nothing else keeps it busy.
        """
        route = await self._require(self.routes, "Route", route_id)
        if route.status == RouteStatus.IN_PROGRESS:
            raise InvalidTransition(
                "Cannot delete a route that is in progress. "
                "Please cancel or complete it first."
            )
        held_truck = route.status in RouteRepository.ACTIVE
        truck_id = route.truck_id
        job_ids = await self._route_job_ids(route)

        async with self._primary(f"deletion of route {route_id}"):
            await self.routes.delete(route)
        logger.info("Route %s deleted (%d jobs released)", route_id, len(job_ids))

        for job_id in job_ids:
            await self._move_job(
                job_id,
                TransportJobStatus.NEEDS_DISPATCH,
                VehicleStatus.READY_FOR_TRANSPORT,
                revert=True,
                route_id=None,
            )
        if held_truck:
            await self._release_truck_if_idle(truck_id)

    # ── Trucks ────────────────────────────────────────────────────────

    async def delete_truck(self, truck_id: int) -> None:
        truck = await self._require(self.trucks, "Truck", truck_id)
        if truck.status == TruckStatus.IN_USE:
            raise InvalidTransition(
                "Cannot delete truck that is currently in use. "
                "Please change the status first."
            )
        async with self._primary(f"deletion of truck {truck_id}"):
            await self.trucks.delete(truck)
        logger.info("Truck %s deleted", truck_id)

    # ── Internals ─────────────────────────────────────────────────────

    @staticmethod
    async def _require(repo, entity: str, entity_id: Optional[int]):
        obj = await repo.get_by_id(entity_id)
        if obj is None:
            raise NotFound(entity, entity_id)
        return obj

    @staticmethod
    def _refuse_cancelled(job: TransportJobModel, action: str) -> None:
        if job.status == TransportJobStatus.CANCELLED:
            raise InvalidTransition(f"Cannot {action} cancelled transport job {job.id}")

    @staticmethod
    def _refuse_cancelled_route(route: RouteModel) -> None:
        if route.status == RouteStatus.CANCELLED:
            raise InvalidTransition(f"Cannot update stops of cancelled route {route.id}")

    @asynccontextmanager
    async def _primary(self, what: str):
        """Savepoint for the triggering change; a failed write is surfaced."""
        try:
            async with self.session.begin_nested():
                yield
        except SQLAlchemyError as exc:
            logger.exception("Failed to persist %s", what)
            raise PersistenceFailure(f"Failed to persist {what}") from exc

    @asynccontextmanager
    async def _side_effect(self, what: str, entity_id):
        """Savepoint for one side-effect write; failures are logged and dropped."""
        try:
            async with self.session.begin_nested():
                yield
        except NotFound as exc:
            logger.warning("Skipping %s: %s", what, exc)
        except SQLAlchemyError:
            logger.exception("Failed to apply %s for %s", what, entity_id)

    async def _move_job(
        self,
        job_id: int,
        target: TransportJobStatus,
        vehicle_target: Optional[VehicleStatus],
        *,
        revert: bool = False,
        **fields,
    ) -> None:
        """Move a job (and then its vehicle) towards *target*.

        *fields* are written alongside the status even when the status move
        itself is refused.
        """
        vehicle_id = None
        async with self._side_effect(f"job -> {target.value}", job_id):
            job = await self._require(self.jobs, "TransportJob", job_id)
            for name, value in fields.items():
                setattr(job, name, value)
            if job.status == target:
                logger.debug("Job %s already %s", job.id, target.value)
            elif job_status_change_allowed(job.status, target, revert=revert):
                logger.info("Job %s %s -> %s", job.id, job.status.value, target.value)
                job.status = target
            else:
                logger.info(
                    "Job %s stays %s (refusing %s)", job.id, job.status.value, target.value
                )
                return
            vehicle_id = job.vehicle_id

        if vehicle_target is not None and vehicle_id is not None:
            await self._move_vehicle(vehicle_id, vehicle_target, revert=revert)

    async def _move_vehicle(
        self,
        vehicle_id: int,
        target: VehicleStatus,
        *,
        revert: bool = False,
        primary: bool = False,
    ) -> None:
        scope = (
            self._primary(f"vehicle {vehicle_id} status")
            if primary
            else self._side_effect(f"vehicle -> {target.value}", vehicle_id)
        )
        async with scope:
            vehicle = await self._require(self.vehicles, "Vehicle", vehicle_id)
            if vehicle.status == target:
                logger.debug("Vehicle %s already %s", vehicle.id, target.value)
            elif vehicle_status_change_allowed(vehicle.status, target, revert=revert):
                logger.info(
                    "Vehicle %s %s -> %s", vehicle.id, vehicle.status.value, target.value
                )
                vehicle.status = target
            else:
                logger.info(
                    "Vehicle %s stays %s (refusing %s)",
                    vehicle.id, vehicle.status.value, target.value,
                )

    async def _move_vehicle_of_job(self, job_id: int, target: VehicleStatus) -> None:
        job = await self.jobs.get_by_id(job_id)
        if job is None:
            logger.warning("Skipping vehicle -> %s: TransportJob %s not found", target.value, job_id)
            return
        await self._move_vehicle(job.vehicle_id, target)

    async def _occupy_truck(self, truck_id: Optional[int], driver_id: Optional[int]) -> None:
        async with self._side_effect("truck -> IN_USE", truck_id):
            truck = await self._require(self.trucks, "Truck", truck_id)
            truck.status = TruckStatus.IN_USE
            if driver_id is not None:
                truck.current_driver_id = driver_id

    async def _release_truck(self, truck_id: Optional[int]) -> None:
        async with self._side_effect("truck release", truck_id):
            truck = await self._require(self.trucks, "Truck", truck_id)
            truck.current_driver_id = None
            if truck.status in _PARKED:
                logger.info("Truck %s stays %s", truck.id, truck.status.value)
            elif truck.status != TruckStatus.AVAILABLE:
                logger.info("Truck %s released", truck.id)
                truck.status = TruckStatus.AVAILABLE

    async def _release_truck_if_idle(
        self, truck_id: int, exclude_job_id: Optional[int] = None
    ) -> None:
        busy = await self.jobs.count_active_on_truck(truck_id, exclude_job_id=exclude_job_id)
        if busy:
            logger.debug("Truck %s still carries %d active jobs", truck_id, busy)
            return
        routes = await self.routes.count_active_on_truck(truck_id)
        if routes:
            logger.debug("Truck %s still drives %d active routes", truck_id, routes)
            return
        await self._release_truck(truck_id)

    async def _check_routable(self, job_ids: list[int], route_id: int) -> None:
        for job in await self.jobs.get_many(job_ids):
            if job.status in JOB_TERMINAL:
                raise InvalidTransition(
                    f"Transport job {job.id} is {job.status.value} and cannot be routed"
                )
            if job.route_id not in (None, route_id) and await self.routes.is_active(job.route_id):
                raise InvalidTransition(
                    f"Transport job {job.id} is already on route {job.route_id}"
                )

    async def _route_job_ids(self, route: RouteModel) -> list[int]:
        """Jobs that point back at the route, stop order first.

        A stop can outlive its job's membership (route cancelled, job routed
        again elsewhere); such jobs belong to their new route and are left out.
        """
        on_stops = progress.job_ids_on_stops(route.stops)
        owned = {
            job.id for job in await self.jobs.get_many(on_stops) if job.route_id == route.id
        }
        job_ids = [job_id for job_id in on_stops if job_id in owned]
        for job in await self.jobs.get_by_route(route.id):
            if job.id not in job_ids:
                job_ids.append(job.id)
        return job_ids

    async def _complete_route(self, route: RouteModel, job_ids: list[int]) -> None:
        if progress.all_stops_completed(route.stops):
            for job_id in job_ids:
                await self._move_job(
                    job_id, TransportJobStatus.DELIVERED, VehicleStatus.DELIVERED
                )
        else:
            logger.info("Route %s completed with open stops; jobs left as they are", route.id)
        await self._release_truck(route.truck_id)

    async def _reconcile_route(self, route: RouteModel) -> None:
        """Re-derive route completion from its stops."""
        if progress.all_stops_completed(route.stops):
            if route.status == RouteStatus.COMPLETED:
                return
            async with self._side_effect("route completion", route.id):
                logger.info("Route %s: all stops completed, completing route", route.id)
                route.status = RouteStatus.COMPLETED
                if route.actual_end_at is None:
                    route.actual_end_at = _now()
            await self._complete_route(route, await self._route_job_ids(route))
        elif route.status == RouteStatus.COMPLETED:
            async with self._side_effect("route reopen", route.id):
                logger.warning("Route %s has open stops again, reopening", route.id)
                route.status = RouteStatus.IN_PROGRESS
            await self._occupy_truck(route.truck_id, route.driver_id)
