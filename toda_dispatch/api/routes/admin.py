"""
Admin / observability endpoints
===============================

GET /api/v1/admin/riders/{rider_id}/trust -- trust counters and current admission verdict
GET /api/v1/admin/health                  -- simple health check
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from toda_dispatch.api.dependencies import get_coordinator
from toda_dispatch.api.middleware import limiter
from toda_dispatch.api.schemas import HealthResponse, RiderTrustResponse
from toda_dispatch.services.dispatch import DispatchCoordinator

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/riders/{rider_id}/trust",
    response_model=RiderTrustResponse,
    summary="Rider trust counters and whether they may book right now",
)
@limiter.limit("100/minute")
async def get_rider_trust(
    request: Request,
    rider_id: str,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    trust = await coordinator.rider_trust(rider_id)
    if trust is None:
        raise HTTPException(
            status_code=404, detail="No verified rider profile for this id"
        )
    outcome = await coordinator.check_admission(rider_id)
    return RiderTrustResponse.from_trust(trust, outcome.value)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
