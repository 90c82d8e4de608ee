"""
FastAPI application factory.

* Registers routes for reservations, trips, credits, payments and admin.
* Starts / stops the ledger reconciliation worker via lifespan events.
* Renders domain errors as ``{"detail": ...}`` with their status code.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shuttle.api.middleware import limiter
from shuttle.api.routes import admin, credits, payments, reservations, trips
from shuttle.config import settings
from shuttle.domain.errors import ShuttleError
from shuttle.infrastructure.redis_client import close_redis
from shuttle.workers import reconciler as _reconciler

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the reconciliation worker on startup; stop it and Redis on shutdown."""
    await _reconciler.start_reconcile_loop()
    yield
    await _reconciler.stop_reconcile_loop()
    await close_redis()


async def shuttle_error_handler(request: Request, exc: ShuttleError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Shuttle Booking API",
        description=(
            "Books seats on shared shuttle trips against prepaid credits. "
            "Later passengers unlock cheaper tiers and earlier passengers "
            "are refunded the difference. Credits are bought through PayFast."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(ShuttleError, shuttle_error_handler)

    # Routers
    app.include_router(reservations.router, prefix="/api/v1")
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(credits.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
