"""FastAPI dependency injection helpers."""

from toda_dispatch.infrastructure.database import async_session_factory
from toda_dispatch.infrastructure.redis_client import get_redis
from toda_dispatch.services.dispatch import DispatchCoordinator
from toda_dispatch.wiring import build_coordinator


async def get_coordinator() -> DispatchCoordinator:
    """A coordinator over the shared DB session factory and Redis pool."""
    return build_coordinator(async_session_factory, get_redis())
