"""
FastAPI application factory.

* Registers routes for status lookups, vehicles, trucks, transport jobs
  and routes.
* Maps status-engine errors onto HTTP responses.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from autohaul.api.middleware import limiter
from autohaul.api.routes import dispatch_routes, status, transport_jobs, trucks, vehicles
from autohaul.config import settings
from autohaul.domain.entities import InvalidTransition, NotFound, PersistenceFailure

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


async def _not_found(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _invalid_transition(request: Request, exc: InvalidTransition) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def _persistence_failure(request: Request, exc: PersistenceFailure) -> JSONResponse:
    logger.error("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Autohaul Dispatch API",
        description=(
            "Tracks purchased vehicles, trucks, transport jobs and driver "
            "routes, keeping their statuses consistent as work progresses."
        ),
        version="1.0.0",
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(NotFound, _not_found)
    app.add_exception_handler(InvalidTransition, _invalid_transition)
    app.add_exception_handler(PersistenceFailure, _persistence_failure)

    # Routers
    app.include_router(status.router, prefix="/api/v1")
    app.include_router(vehicles.router, prefix="/api/v1")
    app.include_router(trucks.router, prefix="/api/v1")
    app.include_router(transport_jobs.router, prefix="/api/v1")
    app.include_router(dispatch_routes.router, prefix="/api/v1")

    return app
