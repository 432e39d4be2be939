"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  Document-number counters run against an
``AsyncMock`` standing in for the Redis client.

SQLite needs two connection hooks before SAVEPOINTs behave: the driver's
own implicit BEGIN is switched off and an explicit one is emitted when
SQLAlchemy starts a transaction.
"""

import itertools
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from autohaul.domain.enums import StopType, TruckStatus, VehicleStatus
from autohaul.infrastructure.database import Base
from autohaul.infrastructure.models import (
    RouteModel,
    RouteStopModel,
    TransportJobModel,
    TruckModel,
    VehicleModel,
)
from autohaul.infrastructure.sequences import DailySequence
from autohaul.services.status_engine import StatusEngine

# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


def make_test_engine() -> AsyncEngine:
    engine = create_async_engine(TEST_DB_URL, echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def fake_sequence(prefix: str) -> DailySequence:
    """Daily sequence over a mocked Redis whose INCR counts 1, 2, 3..."""
    client = AsyncMock()
    client.incr = AsyncMock(side_effect=itertools.count(1))
    return DailySequence(client, prefix, ttl_seconds=60)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create tables on a fresh in-memory database, then drop everything."""
    engine = make_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def engine(db_session: AsyncSession) -> StatusEngine:
    """Status engine in route mode with fake document numbering."""
    return StatusEngine(
        db_session,
        job_numbers=fake_sequence("TJ"),
        route_numbers=fake_sequence("RT"),
        dispatch_mode="route",
    )


@pytest_asyncio.fixture
async def direct_engine(db_session: AsyncSession) -> StatusEngine:
    return StatusEngine(
        db_session,
        job_numbers=fake_sequence("TJ"),
        route_numbers=fake_sequence("RT"),
        dispatch_mode="direct",
    )


# ── Builders ──────────────────────────────────────────────────────────


async def add_vehicle(
    session: AsyncSession,
    status: VehicleStatus = VehicleStatus.INTAKE_COMPLETED,
) -> VehicleModel:
    vehicle = VehicleModel(vin="1HGCM82633A004352", make="Honda", model="Accord", status=status)
    session.add(vehicle)
    await session.flush()
    return vehicle


async def add_truck(
    session: AsyncSession,
    status: TruckStatus = TruckStatus.AVAILABLE,
) -> TruckModel:
    truck = TruckModel(truck_number="T-1", status=status)
    session.add(truck)
    await session.flush()
    return truck


async def add_job(engine: StatusEngine, vehicle: Optional[VehicleModel] = None) -> TransportJobModel:
    """Create a job the way the API does: insert, then notify the engine."""
    if vehicle is None:
        vehicle = await add_vehicle(engine.session)
    job = await engine.jobs.create(TransportJobModel(vehicle_id=vehicle.id))
    await engine.on_job_created(job.id, vehicle.id)
    return job


async def add_route(
    engine: StatusEngine,
    truck: TruckModel,
    stops: list[tuple[StopType, Optional[int]]],
    driver_id: int = 7,
) -> RouteModel:
    """Create a route with *stops* given as ``(stop_type, job_id)`` pairs."""
    route = await engine.routes.create(
        RouteModel(
            driver_id=driver_id,
            truck_id=truck.id,
            stops=[
                RouteStopModel(sequence=i, stop_type=stop_type, transport_job_id=job_id)
                for i, (stop_type, job_id) in enumerate(stops, start=1)
            ],
        )
    )
    await engine.on_route_created(route.id, [], truck.id)
    return route


def pickup_then_drop(*job_ids: int) -> list[tuple[StopType, Optional[int]]]:
    """All pickups in order, then all drops in order."""
    return [(StopType.PICKUP, j) for j in job_ids] + [(StopType.DROP, j) for j in job_ids]
