"""FastAPI dependency injection helpers."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from autohaul.infrastructure.database import async_session_factory
from autohaul.infrastructure.sequences import job_sequence, route_sequence
from autohaul.services.status_engine import StatusEngine


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_engine(db: AsyncSession = Depends(get_db)) -> StatusEngine:
    """Status engine bound to the request session and the Redis numbering."""
    return StatusEngine(
        db,
        job_numbers=await job_sequence(),
        route_numbers=await route_sequence(),
    )
