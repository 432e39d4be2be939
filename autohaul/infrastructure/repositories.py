"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
get / reload / delete by id plus the handful of queries the status engine
needs.  A truck counts as busy while it carries an IN_TRANSIT direct job
or drives an active route; both counts are exposed here.
"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .models import RouteModel, TransportJobModel, TruckModel, VehicleModel
from autohaul.domain.enums import RouteStatus, TransportJobStatus


class _Repository:
    model: type

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, obj):
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get_by_id(self, obj_id: Optional[int]):
        if obj_id is None:
            return None
        return await self.session.get(self.model, obj_id)

    async def reload(self, obj_id: int):
        """Flush pending changes and re-read the row from the database."""
        await self.session.flush()
        return await self.session.get(self.model, obj_id, populate_existing=True)

    async def delete(self, obj) -> None:
        await self.session.delete(obj)
        await self.session.flush()


class VehicleRepository(_Repository):
    model = VehicleModel


class TruckRepository(_Repository):
    model = TruckModel


class TransportJobRepository(_Repository):
    model = TransportJobModel

    async def get_many(self, job_ids: Iterable[int]) -> list[TransportJobModel]:
        ids = list(job_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(TransportJobModel).where(TransportJobModel.id.in_(ids))
        )
        return list(result.scalars().all())

    async def get_by_route(self, route_id: int) -> list[TransportJobModel]:
        result = await self.session.execute(
            select(TransportJobModel)
            .where(TransportJobModel.route_id == route_id)
            .order_by(TransportJobModel.id)
        )
        return list(result.scalars().all())

    async def count_active_on_truck(
        self, truck_id: int, exclude_job_id: Optional[int] = None
    ) -> int:
        """Jobs directly assigned to *truck_id* that are IN_TRANSIT."""
        query = (
            select(func.count())
            .select_from(TransportJobModel)
            .where(
                TransportJobModel.truck_id == truck_id,
                TransportJobModel.status == TransportJobStatus.IN_TRANSIT,
            )
        )
        if exclude_job_id is not None:
            query = query.where(TransportJobModel.id != exclude_job_id)
        result = await self.session.execute(query)
        return result.scalar() or 0


class RouteRepository(_Repository):
    model = RouteModel

    ACTIVE = (RouteStatus.PLANNED, RouteStatus.IN_PROGRESS)

    async def get_by_id(self, route_id: Optional[int]) -> Optional[RouteModel]:
        """Load a route with its stops, refreshed from the database.

        Pending changes are autoflushed first, so the result reflects the
        current persisted state rather than a stale identity-map copy.
        """
        if route_id is None:
            return None
        result = await self.session.execute(
            select(RouteModel)
            .options(selectinload(RouteModel.stops))
            .where(RouteModel.id == route_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def is_active(self, route_id: Optional[int]) -> bool:
        route = await self.get_by_id(route_id)
        return route is not None and route.status in self.ACTIVE

    async def count_active_on_truck(self, truck_id: int) -> int:
        """PLANNED or IN_PROGRESS routes driven with *truck_id*."""
        result = await self.session.execute(
            select(func.count())
            .select_from(RouteModel)
            .where(RouteModel.truck_id == truck_id, RouteModel.status.in_(self.ACTIVE))
        )
        return result.scalar() or 0
