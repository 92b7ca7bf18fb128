"""
FastAPI application factory.

* Registers routes for bookings and admin.
* Starts / stops the pending-booking expiry worker via lifespan events.
* Maps dispatch-core errors to HTTP responses.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from toda_dispatch.api.middleware import limiter
from toda_dispatch.api.routes import admin, bookings
from toda_dispatch.config import settings
from toda_dispatch.domain.errors import (
    BookingNotFoundError,
    ConflictError,
    InvalidCoordinateError,
    InvalidTransitionError,
    StoreUnavailableError,
    ValidationError,
)
from toda_dispatch.infrastructure.database import engine
from toda_dispatch.infrastructure.redis_client import close_redis
from toda_dispatch.workers import expiry as _expiry

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the expiry worker on startup; stop it and release pools on shutdown."""
    await _expiry.start_expiry_loop()
    yield
    await _expiry.stop_expiry_loop()
    await close_redis()
    await engine.dispose()


# ── Error mapping ─────────────────────────────────────────────────────


async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422, content={"detail": str(exc), "reason": exc.reason.value}
    )


async def _invalid_transition(request: Request, exc: InvalidTransitionError):
    logger.warning("Rejected transition on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=409,
        content={
            "detail": str(exc),
            "reason": "INVALID_TRANSITION",
            "from": exc.current.value,
            "attempted": exc.attempted.value,
        },
    )


async def _conflict(request: Request, exc: ConflictError):
    return JSONResponse(
        status_code=409,
        content={"detail": "Booking already taken", "reason": "CONFLICT"},
    )


async def _not_found(request: Request, exc: BookingNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _invalid_coordinate(request: Request, exc: InvalidCoordinateError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


async def _store_unavailable(request: Request, exc: StoreUnavailableError):
    logger.error("Backing store unavailable: %s", exc)
    return JSONResponse(
        status_code=503, content={"detail": "Service temporarily unavailable"}
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="TODA Dispatch API",
        description=(
            "Tricycle booking dispatch: trust-gated admission, a strict "
            "booking state machine with single-winner driver acceptance, "
            "distance-based fares and rider/driver chat channels."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(InvalidTransitionError, _invalid_transition)
    app.add_exception_handler(ConflictError, _conflict)
    app.add_exception_handler(BookingNotFoundError, _not_found)
    app.add_exception_handler(InvalidCoordinateError, _invalid_coordinate)
    app.add_exception_handler(StoreUnavailableError, _store_unavailable)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
