"""
Status engine, route variant.

Covers the end-to-end route lifecycle, cancellation, stop bookkeeping and
the invariants that must hold after every call: route completion follows
its stops, at most one stop is in progress, and a finished route frees
its truck.
"""

from __future__ import annotations

import pytest

from autohaul.domain import route_progress as progress
from autohaul.domain.entities import InvalidTransition, NotFound
from autohaul.domain.enums import (
    RouteStatus,
    StopStatus,
    StopType,
    TransportJobStatus,
    TruckStatus,
    VehicleStatus,
)
from autohaul.infrastructure.models import RouteModel
from autohaul.services.status_engine import StatusEngine
from tests.conftest import (
    add_job,
    add_route,
    add_truck,
    add_vehicle,
    pickup_then_drop,
)


async def states(engine: StatusEngine, job, truck):
    """Fresh (job status, vehicle status, truck status) triple."""
    job = await engine.jobs.reload(job.id)
    vehicle = await engine.vehicles.reload(job.vehicle_id)
    truck = await engine.trucks.reload(truck.id)
    return job.status, vehicle.status, truck.status


async def start_route(engine: StatusEngine, route) -> None:
    await engine.on_route_status_changed(route.id, RouteStatus.IN_PROGRESS, RouteStatus.PLANNED)


async def complete_stop(engine: StatusEngine, route_id: int, index: int) -> None:
    await engine.on_stop_updated(route_id, index, StopStatus.COMPLETED)


def assert_route_invariants(route) -> None:
    assert len(progress.in_progress_stops(route.stops)) <= 1
    assert (route.status == RouteStatus.COMPLETED) == progress.all_stops_completed(route.stops)


# ── Full lifecycle ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_route_lifecycle_end_to_end(engine: StatusEngine, db_session):
    vehicle = await add_vehicle(db_session, status=VehicleStatus.PURCHASED_INTAKE_NEEDED)
    await engine.on_vehicle_intake(vehicle.id)
    assert (await engine.vehicles.reload(vehicle.id)).status == VehicleStatus.INTAKE_COMPLETED

    job = await add_job(engine, vehicle)
    truck = await add_truck(db_session)
    assert await states(engine, job, truck) == (
        TransportJobStatus.NEEDS_DISPATCH,
        VehicleStatus.READY_FOR_TRANSPORT,
        TruckStatus.AVAILABLE,
    )

    route = await add_route(engine, truck, pickup_then_drop(job.id))
    assert await states(engine, job, truck) == (
        TransportJobStatus.DISPATCHED,
        VehicleStatus.READY_FOR_TRANSPORT,
        TruckStatus.IN_USE,
    )
    assert (await engine.trucks.reload(truck.id)).current_driver_id == 7

    await start_route(engine, route)
    route = await engine.routes.get_by_id(route.id)
    assert [s.status for s in route.stops] == [StopStatus.IN_PROGRESS, StopStatus.PENDING]
    assert route.actual_start_at is not None
    assert await states(engine, job, truck) == (
        TransportJobStatus.IN_TRANSIT,
        VehicleStatus.IN_TRANSPORT,
        TruckStatus.IN_USE,
    )

    await complete_stop(engine, route.id, 0)
    route = await engine.routes.get_by_id(route.id)
    assert [s.status for s in route.stops] == [StopStatus.COMPLETED, StopStatus.IN_PROGRESS]
    assert route.status == RouteStatus.IN_PROGRESS
    assert (await engine.vehicles.reload(vehicle.id)).status == VehicleStatus.IN_TRANSPORT

    await complete_stop(engine, route.id, 1)
    route = await engine.routes.get_by_id(route.id)
    assert route.status == RouteStatus.COMPLETED
    assert route.actual_end_at is not None
    assert await states(engine, job, truck) == (
        TransportJobStatus.DELIVERED,
        VehicleStatus.DELIVERED,
        TruckStatus.AVAILABLE,
    )
    assert (await engine.trucks.reload(truck.id)).current_driver_id is None
    assert_route_invariants(route)


@pytest.mark.asyncio
async def test_route_creation_assigns_number_and_checklists(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))

    route = await engine.routes.get_by_id(route.id)
    assert route.route_number.startswith("RT-")
    assert route.route_number.endswith("-001")
    assert route.status == RouteStatus.PLANNED
    assert route.stops[0].checklist[0]["item"] == "Verify vehicle VIN matches paperwork"
    assert route.stops[1].checklist[0]["item"] == "Verify delivery location matches order"
    assert (await engine.jobs.reload(job.id)).route_id == route.id


@pytest.mark.asyncio
async def test_selected_jobs_are_dispatched_too(engine: StatusEngine, db_session):
    on_stops = await add_job(engine)
    selected = await add_job(engine)
    truck = await add_truck(db_session)
    route = await engine.routes.create(
        RouteModel(driver_id=3, truck_id=truck.id, stops=[])
    )
    await engine.on_route_created(route.id, [selected.id], truck.id)

    selected = await engine.jobs.reload(selected.id)
    assert selected.status == TransportJobStatus.DISPATCHED
    assert selected.route_id == route.id
    assert (await engine.jobs.reload(on_stops.id)).status == TransportJobStatus.NEEDS_DISPATCH


@pytest.mark.asyncio
async def test_invalid_stops_rejected(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    with pytest.raises(InvalidTransition):
        await add_route(engine, truck, [(StopType.DROP, job.id), (StopType.PICKUP, job.id)])


@pytest.mark.asyncio
async def test_job_cannot_join_second_active_route(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    await add_route(engine, truck, pickup_then_drop(job.id))
    with pytest.raises(InvalidTransition):
        await add_route(engine, truck, pickup_then_drop(job.id))


@pytest.mark.asyncio
async def test_missing_truck_is_not_found(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    with pytest.raises(NotFound):
        await engine.on_route_created(route.id, [], 999)


# ── Cancellation ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cancel_dispatched_route_reverts_everything(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))

    await engine.on_route_status_changed(route.id, RouteStatus.CANCELLED, RouteStatus.PLANNED)

    assert await states(engine, job, truck) == (
        TransportJobStatus.NEEDS_DISPATCH,
        VehicleStatus.READY_FOR_TRANSPORT,
        TruckStatus.AVAILABLE,
    )
    assert (await engine.trucks.reload(truck.id)).current_driver_id is None


@pytest.mark.asyncio
async def test_cancel_running_route_pulls_vehicle_back(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    await start_route(engine, route)

    await engine.on_route_status_changed(route.id, RouteStatus.CANCELLED, RouteStatus.IN_PROGRESS)

    job_status, vehicle_status, _ = await states(engine, job, truck)
    assert job_status == TransportJobStatus.NEEDS_DISPATCH
    assert vehicle_status == VehicleStatus.READY_FOR_TRANSPORT


@pytest.mark.asyncio
async def test_cancel_keeps_delivered_jobs(engine: StatusEngine, db_session):
    first = await add_job(engine)
    second = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(first.id, second.id))
    await start_route(engine, route)
    await complete_stop(engine, route.id, 0)
    await complete_stop(engine, route.id, 2)  # drop of the first job

    await engine.on_route_status_changed(route.id, RouteStatus.CANCELLED, RouteStatus.IN_PROGRESS)

    assert (await engine.jobs.reload(first.id)).status == TransportJobStatus.DELIVERED
    assert (await engine.jobs.reload(second.id)).status == TransportJobStatus.NEEDS_DISPATCH


@pytest.mark.asyncio
async def test_cancel_leaves_truck_in_maintenance(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    truck = await engine.trucks.reload(truck.id)
    truck.status = TruckStatus.MAINTENANCE

    await engine.on_route_status_changed(route.id, RouteStatus.CANCELLED, RouteStatus.PLANNED)

    truck = await engine.trucks.reload(truck.id)
    assert truck.status == TruckStatus.MAINTENANCE
    assert truck.current_driver_id is None


# ── Manual completion ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_manual_completion_with_open_stops_leaves_jobs(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    await start_route(engine, route)

    await engine.on_route_status_changed(route.id, RouteStatus.COMPLETED, RouteStatus.IN_PROGRESS)

    assert await states(engine, job, truck) == (
        TransportJobStatus.IN_TRANSIT,
        VehicleStatus.IN_TRANSPORT,
        TruckStatus.AVAILABLE,
    )


@pytest.mark.asyncio
async def test_same_status_is_a_no_op(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))

    await engine.on_route_status_changed(route.id, RouteStatus.PLANNED, RouteStatus.PLANNED)

    route = await engine.routes.get_by_id(route.id)
    assert all(s.status == StopStatus.PENDING for s in route.stops)


# ── Stops ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_at_most_one_stop_in_progress(engine: StatusEngine, db_session):
    first = await add_job(engine)
    second = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(first.id, second.id))
    await start_route(engine, route)

    await engine.on_stop_updated(route.id, 1, StopStatus.IN_PROGRESS)

    route = await engine.routes.get_by_id(route.id)
    assert [s.status for s in route.stops][:2] == [StopStatus.PENDING, StopStatus.IN_PROGRESS]
    assert_route_invariants(route)


@pytest.mark.asyncio
async def test_skipped_stop_hands_over(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(
        engine, truck, [(StopType.PICKUP, job.id), (StopType.BREAK, None), (StopType.DROP, job.id)]
    )
    await start_route(engine, route)
    await complete_stop(engine, route.id, 0)

    await engine.on_stop_updated(route.id, 1, StopStatus.SKIPPED)

    route = await engine.routes.get_by_id(route.id)
    assert route.stops[2].status == StopStatus.IN_PROGRESS
    assert route.status == RouteStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_partial_drops_keep_other_jobs_moving(engine: StatusEngine, db_session):
    first = await add_job(engine)
    second = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(first.id, second.id))
    await start_route(engine, route)
    for index in range(3):
        await complete_stop(engine, route.id, index)

    assert (await engine.jobs.reload(first.id)).status == TransportJobStatus.DELIVERED
    assert (await engine.jobs.reload(second.id)).status == TransportJobStatus.IN_TRANSIT
    assert (await engine.trucks.reload(truck.id)).status == TruckStatus.IN_USE

    route = await engine.routes.get_by_id(route.id)
    assert route.status == RouteStatus.IN_PROGRESS
    assert_route_invariants(route)


@pytest.mark.asyncio
async def test_completed_pickup_does_not_undo_delivery(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    await start_route(engine, route)
    await complete_stop(engine, route.id, 1)  # drop first, out of order

    await complete_stop(engine, route.id, 0)

    assert (await engine.vehicles.reload(job.vehicle_id)).status == VehicleStatus.DELIVERED


@pytest.mark.asyncio
async def test_stop_completion_is_stamped_once(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    await start_route(engine, route)
    await complete_stop(engine, route.id, 0)
    stamped = (await engine.routes.get_by_id(route.id)).stops[0].actual_at

    await complete_stop(engine, route.id, 0)

    assert (await engine.routes.get_by_id(route.id)).stops[0].actual_at == stamped


@pytest.mark.asyncio
async def test_reopened_stop_reopens_route(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    await start_route(engine, route)
    await complete_stop(engine, route.id, 0)
    await complete_stop(engine, route.id, 1)

    await engine.on_stop_updated(route.id, 1, StopStatus.PENDING)

    route = await engine.routes.get_by_id(route.id)
    assert route.status == RouteStatus.IN_PROGRESS
    assert (await engine.trucks.reload(truck.id)).status == TruckStatus.IN_USE
    assert (await engine.jobs.reload(job.id)).status == TransportJobStatus.DELIVERED
    assert_route_invariants(route)


@pytest.mark.asyncio
async def test_stored_stop_type_wins_over_caller(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    await start_route(engine, route)

    await engine.on_stop_updated(
        route.id, 0, StopStatus.COMPLETED, stop_type=StopType.DROP, job_id=job.id
    )

    assert (await engine.jobs.reload(job.id)).status == TransportJobStatus.IN_TRANSIT


@pytest.mark.asyncio
async def test_unknown_stop_index(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    with pytest.raises(NotFound):
        await engine.on_stop_updated(route.id, 5, StopStatus.COMPLETED)


# ── Idempotence ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_repeated_events_converge(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    await engine.on_route_created(route.id, [], truck.id)
    await start_route(engine, route)
    await start_route(engine, route)
    await complete_stop(engine, route.id, 0)
    once = await states(engine, job, truck)
    stops_once = [s.status for s in (await engine.routes.get_by_id(route.id)).stops]

    await complete_stop(engine, route.id, 0)

    assert await states(engine, job, truck) == once
    assert [s.status for s in (await engine.routes.get_by_id(route.id)).stops] == stops_once
    assert (await engine.routes.get_by_id(route.id)).route_number.endswith("-001")


# ── Removing a job ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_remove_job_renumbers_and_reverts(engine: StatusEngine, db_session):
    first = await add_job(engine)
    second = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(first.id, second.id))
    await start_route(engine, route)

    await engine.on_job_removed_from_route(first.id)

    route = await engine.routes.get_by_id(route.id)
    assert [s.sequence for s in route.stops] == [1, 2]
    assert {s.transport_job_id for s in route.stops} == {second.id}
    assert route.stops[0].status == StopStatus.IN_PROGRESS
    assert_route_invariants(route)

    first = await engine.jobs.reload(first.id)
    assert first.status == TransportJobStatus.NEEDS_DISPATCH
    assert first.route_id is None
    assert (await engine.vehicles.reload(first.vehicle_id)).status == VehicleStatus.READY_FOR_TRANSPORT


@pytest.mark.asyncio
async def test_remove_last_open_job_completes_route(engine: StatusEngine, db_session):
    first = await add_job(engine)
    second = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(
        engine,
        truck,
        [
            (StopType.PICKUP, first.id),
            (StopType.DROP, first.id),
            (StopType.PICKUP, second.id),
            (StopType.DROP, second.id),
        ],
    )
    await start_route(engine, route)
    await complete_stop(engine, route.id, 0)
    await complete_stop(engine, route.id, 1)

    await engine.on_job_removed_from_route(second.id)

    route = await engine.routes.get_by_id(route.id)
    assert route.status == RouteStatus.COMPLETED
    assert (await engine.trucks.reload(truck.id)).status == TruckStatus.AVAILABLE


@pytest.mark.asyncio
async def test_job_on_active_route_cannot_be_deleted(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    await add_route(engine, truck, pickup_then_drop(job.id))
    with pytest.raises(InvalidTransition):
        await engine.delete_job(job.id)


@pytest.mark.asyncio
async def test_job_on_cancelled_route_cannot_be_deleted(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    await engine.on_route_status_changed(route.id, RouteStatus.CANCELLED, RouteStatus.PLANNED)

    with pytest.raises(InvalidTransition):
        await engine.delete_job(job.id)
    assert [s.transport_job_id for s in (await engine.routes.get_by_id(route.id)).stops] == [
        job.id,
        job.id,
    ]

    await engine.on_job_removed_from_route(job.id)
    await engine.delete_job(job.id)

    assert await engine.jobs.get_by_id(job.id) is None
    assert (await engine.routes.get_by_id(route.id)).stops == []


@pytest.mark.asyncio
async def test_removing_job_without_route_is_rejected(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    await engine.on_job_assigned(job.id, 42, truck.id)

    with pytest.raises(InvalidTransition):
        await engine.on_job_removed_from_route(job.id)

    assert await states(engine, job, truck) == (
        TransportJobStatus.IN_TRANSIT,
        VehicleStatus.IN_TRANSPORT,
        TruckStatus.IN_USE,
    )


# ── Stale routes ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cancelled_route_rejects_stop_updates(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    await start_route(engine, route)
    await engine.on_route_status_changed(route.id, RouteStatus.CANCELLED, RouteStatus.IN_PROGRESS)

    with pytest.raises(InvalidTransition):
        await complete_stop(engine, route.id, 0)

    route = await engine.routes.get_by_id(route.id)
    assert route.status == RouteStatus.CANCELLED
    assert (await engine.jobs.reload(job.id)).status == TransportJobStatus.NEEDS_DISPATCH


@pytest.mark.asyncio
async def test_old_route_stops_leave_rerouted_job_alone(engine: StatusEngine, db_session):
    job = await add_job(engine)
    old_truck = await add_truck(db_session)
    new_truck = await add_truck(db_session)
    old = await add_route(engine, old_truck, pickup_then_drop(job.id))
    await start_route(engine, old)
    await engine.on_route_status_changed(old.id, RouteStatus.COMPLETED, RouteStatus.IN_PROGRESS)

    new = await add_route(engine, new_truck, pickup_then_drop(job.id))
    await start_route(engine, new)
    await complete_stop(engine, old.id, 0)
    await complete_stop(engine, old.id, 1)

    job = await engine.jobs.reload(job.id)
    assert job.route_id == new.id
    assert job.status == TransportJobStatus.IN_TRANSIT
    assert (await engine.vehicles.reload(job.vehicle_id)).status == VehicleStatus.IN_TRANSPORT
    new = await engine.routes.get_by_id(new.id)
    assert new.status == RouteStatus.IN_PROGRESS
    assert [s.status for s in new.stops] == [StopStatus.IN_PROGRESS, StopStatus.PENDING]


@pytest.mark.asyncio
async def test_direct_delivery_keeps_truck_of_running_route(engine: StatusEngine, db_session):
    routed = await add_job(engine)
    direct = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(routed.id))
    await start_route(engine, route)
    await engine.on_job_assigned(direct.id, 7, truck.id)

    await engine.on_job_drop_recorded(direct.id)

    truck = await engine.trucks.reload(truck.id)
    assert truck.status == TruckStatus.IN_USE
    assert truck.current_driver_id == 7
    assert (await engine.jobs.reload(routed.id)).status == TransportJobStatus.IN_TRANSIT
    assert (await engine.jobs.reload(direct.id)).status == TransportJobStatus.DELIVERED


# ── Deleting a route ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_delete_planned_route_releases_jobs_and_truck(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))

    await engine.delete_route(route.id)

    assert await engine.routes.get_by_id(route.id) is None
    assert await states(engine, job, truck) == (
        TransportJobStatus.NEEDS_DISPATCH,
        VehicleStatus.READY_FOR_TRANSPORT,
        TruckStatus.AVAILABLE,
    )
    assert (await engine.jobs.reload(job.id)).route_id is None
    assert (await engine.trucks.reload(truck.id)).current_driver_id is None

    await engine.delete_job(job.id)
    assert await engine.jobs.get_by_id(job.id) is None


@pytest.mark.asyncio
async def test_delete_running_route_rejected(engine: StatusEngine, db_session):
    job = await add_job(engine)
    truck = await add_truck(db_session)
    route = await add_route(engine, truck, pickup_then_drop(job.id))
    await start_route(engine, route)

    with pytest.raises(InvalidTransition):
        await engine.delete_route(route.id)

    assert (await engine.routes.get_by_id(route.id)).status == RouteStatus.IN_PROGRESS
    assert (await engine.jobs.reload(job.id)).route_id == route.id


@pytest.mark.asyncio
async def test_delete_finished_route_keeps_delivery_and_truck(engine: StatusEngine, db_session):
    done = await add_job(engine)
    waiting = await add_job(engine)
    truck = await add_truck(db_session)
    finished = await add_route(engine, truck, pickup_then_drop(done.id))
    await start_route(engine, finished)
    await complete_stop(engine, finished.id, 0)
    await complete_stop(engine, finished.id, 1)
    await add_route(engine, truck, pickup_then_drop(waiting.id))

    await engine.delete_route(finished.id)

    done = await engine.jobs.reload(done.id)
    assert done.status == TransportJobStatus.DELIVERED
    assert done.route_id is None
    assert (await engine.trucks.reload(truck.id)).status == TruckStatus.IN_USE


@pytest.mark.asyncio
async def test_delete_unknown_route(engine: StatusEngine):
    with pytest.raises(NotFound):
        await engine.delete_route(999)
