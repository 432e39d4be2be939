"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations (Redis must be reachable for document numbers):
    python seed.py

Creates:
  - 6 sample vehicles (Houston-area auction purchases)
  - 3 sample trucks (one in maintenance)
  - 4 transport jobs, two of them dispatched on a planned route
  - 1 route with pickup / drop stops and a rest stop
"""

import asyncio

from sqlalchemy import text

from autohaul.domain.enums import Carrier, StopType, TruckCapacity, TruckStatus
from autohaul.infrastructure.database import async_session_factory, engine
from autohaul.infrastructure.models import (
    RouteModel,
    RouteStopModel,
    TransportJobModel,
    TruckModel,
    VehicleModel,
)
from autohaul.infrastructure.sequences import job_sequence, route_sequence
from autohaul.services.status_engine import StatusEngine

VEHICLES = [
    {"vin": "1HGCM82633A004352", "year": 2019, "make": "Honda", "model": "Accord", "pickup_city": "Houston", "drop_city": "Dallas"},
    {"vin": "2T1BURHE5JC034512", "year": 2018, "make": "Toyota", "model": "Corolla", "pickup_city": "Houston", "drop_city": "Dallas"},
    {"vin": "1FTFW1ET5DFC10312", "year": 2021, "make": "Ford", "model": "F-150", "pickup_city": "Katy", "drop_city": "Austin"},
    {"vin": "3VWDX7AJ5DM384712", "year": 2017, "make": "Volkswagen", "model": "Jetta", "pickup_city": "Sugar Land", "drop_city": "San Antonio"},
    {"vin": "5YJ3E1EA7KF317290", "year": 2020, "make": "Tesla", "model": "Model 3", "pickup_city": "Houston", "drop_city": "Houston"},
    {"vin": "1C4RJFAG0FC625797", "year": 2022, "make": "Jeep", "model": "Grand Cherokee", "pickup_city": "Pasadena", "drop_city": "Dallas"},
]

TRUCKS = [
    {"truck_number": "T-101", "license_plate": "TX-4821", "capacity": TruckCapacity.QUAD, "status": TruckStatus.AVAILABLE},
    {"truck_number": "T-102", "license_plate": "TX-7730", "capacity": TruckCapacity.DOUBLE, "status": TruckStatus.AVAILABLE},
    {"truck_number": "T-103", "license_plate": "TX-1198", "capacity": TruckCapacity.SINGLE, "status": TruckStatus.MAINTENANCE},
]

ROUTE_DRIVER_ID = 1
DIRECT_DRIVER_ID = 2


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM vehicles"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        status_engine = StatusEngine(
            session,
            job_numbers=await job_sequence(),
            route_numbers=await route_sequence(),
        )

        # ── Vehicles ──────────────────────────────────────────────────
        vehicles = []
        for v in VEHICLES:
            vehicle = await status_engine.vehicles.create(VehicleModel(**v))
            await status_engine.on_vehicle_intake(vehicle.id)
            vehicles.append(vehicle)
        print(f"  Created {len(vehicles)} vehicles")

        # ── Trucks ────────────────────────────────────────────────────
        trucks = [await status_engine.trucks.create(TruckModel(**t)) for t in TRUCKS]
        print(f"  Created {len(trucks)} trucks")

        # ── Transport jobs ────────────────────────────────────────────
        jobs = []
        for vehicle in vehicles[:4]:
            job = await status_engine.jobs.create(
                TransportJobModel(vehicle_id=vehicle.id, carrier=Carrier.PTG)
            )
            await status_engine.on_job_created(job.id, vehicle.id)
            jobs.append(job)
        print(f"  Created {len(jobs)} transport jobs")

        # ── Route (jobs 1 and 2) ──────────────────────────────────────
        route = await status_engine.routes.create(
            RouteModel(
                driver_id=ROUTE_DRIVER_ID,
                truck_id=trucks[0].id,
                stops=[
                    RouteStopModel(sequence=1, stop_type=StopType.PICKUP, transport_job_id=jobs[0].id, city="Houston"),
                    RouteStopModel(sequence=2, stop_type=StopType.PICKUP, transport_job_id=jobs[1].id, city="Houston"),
                    RouteStopModel(sequence=3, stop_type=StopType.REST, city="Madisonville"),
                    RouteStopModel(sequence=4, stop_type=StopType.DROP, transport_job_id=jobs[0].id, city="Dallas"),
                    RouteStopModel(sequence=5, stop_type=StopType.DROP, transport_job_id=jobs[1].id, city="Dallas"),
                ],
            )
        )
        await status_engine.on_route_created(route.id, [], trucks[0].id)
        print("  Created 1 route")

        # ── Direct assignment (job 3) ─────────────────────────────────
        await status_engine.on_job_assigned(jobs[2].id, DIRECT_DRIVER_ID, trucks[1].id)
        print("  Assigned 1 job directly")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
