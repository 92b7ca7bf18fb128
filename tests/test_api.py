"""
Integration tests for the REST API endpoints.

The coordinator dependency is overridden with one built on the SQLite
session factory from conftest (no Redis, so no booking feed), and the
expiry worker is patched out of the lifespan.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tests.conftest import add_rider

PICKUP = {"lat": 14.7490, "lng": 121.0510}
DROPOFF = {"lat": 14.7560, "lng": 121.0620}


def booking_body(rider_id: str = "r1") -> dict:
    return {
        "rider_id": rider_id,
        "rider_name": "Juan Dela Cruz",
        "rider_phone": "09171230001",
        "pickup": PICKUP,
        "dropoff": DROPOFF,
        "pickup_label": "Terminal",
        "dropoff_label": "Zabarte Rd",
    }


# ── Fixture ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory):
    """AsyncClient over the app, backed by the SQLite session factory."""
    for rider_id in ("r1", "r2", "r3"):
        await add_rider(session_factory, rider_id)
    await add_rider(session_factory, "blocked", is_blocked=True)
    await add_rider(session_factory, "unverified", is_phone_verified=False)

    with (
        patch(
            "toda_dispatch.workers.expiry.start_expiry_loop",
            new_callable=AsyncMock,
        ),
        patch(
            "toda_dispatch.workers.expiry.stop_expiry_loop",
            new_callable=AsyncMock,
        ),
    ):
        from toda_dispatch.api.app import create_app
        from toda_dispatch.api.dependencies import get_coordinator
        from toda_dispatch.api.middleware import limiter
        from toda_dispatch.wiring import build_coordinator

        limiter.reset()

        async def _test_coordinator():
            return build_coordinator(session_factory)

        app = create_app()
        app.dependency_overrides[get_coordinator] = _test_coordinator

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


async def create_booking(client: AsyncClient, rider_id: str = "r1") -> dict:
    resp = await client.post("/api/v1/bookings", json=booking_body(rider_id))
    assert resp.status_code == 201, resp.text
    return resp.json()


# ── Tests ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_create_booking_returns_201(client: AsyncClient):
    data = await create_booking(client)
    assert data["status"] == "PENDING"
    assert data["rider_id"] == "r1"
    assert data["estimated_fare"] == 25.0
    assert data["assigned_driver_id"] is None
    assert len(data["verification_code"]) == 4


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "rider_id,reason",
    [
        ("blocked", "USER_BLOCKED"),
        ("unverified", "PHONE_NOT_VERIFIED"),
        ("nobody", "PHONE_NOT_VERIFIED"),
    ],
)
async def test_refused_booking_returns_reason(client: AsyncClient, rider_id, reason):
    resp = await client.post("/api/v1/bookings", json=booking_body(rider_id))
    assert resp.status_code == 422
    assert resp.json()["reason"] == reason

    active = await client.get("/api/v1/bookings/active")
    assert active.json() == []


@pytest.mark.asyncio
async def test_second_booking_too_soon(client: AsyncClient):
    await create_booking(client)
    resp = await client.post("/api/v1/bookings", json=booking_body())
    assert resp.status_code == 422
    assert resp.json()["reason"] == "TOO_SOON_SINCE_LAST_BOOKING"


@pytest.mark.asyncio
async def test_out_of_range_coordinate(client: AsyncClient):
    body = booking_body()
    body["pickup"] = {"lat": 95.0, "lng": 121.0}
    resp = await client.post("/api/v1/bookings", json=body)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_quote(client: AsyncClient):
    resp = await client.post(
        "/api/v1/bookings/quote",
        json={
            "pickup": PICKUP,
            "dropoff": DROPOFF,
            "driver_location": {"lat": 14.7300, "lng": 121.0510},
        },
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["trip_fare"] == 25.0
    assert data["driver_travel_fee"] > 0
    assert data["total_fare"] == pytest.approx(
        data["trip_fare"] + data["driver_travel_fee"], abs=0.01
    )


@pytest.mark.asyncio
async def test_get_booking_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/bookings/does-not-exist")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_full_ride(client: AsyncClient):
    booking = await create_booking(client)
    booking_id = booking["id"]

    resp = await client.post(
        f"/api/v1/bookings/{booking_id}/accept",
        json={"driver_id": "d1", "tricycle_id": "TODA-177"},
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "ACCEPTED"
    assert resp.json()["assigned_tricycle_id"] == "TODA-177"

    resp = await client.post(f"/api/v1/bookings/{booking_id}/start")
    assert resp.json()["status"] == "IN_PROGRESS"

    resp = await client.post(
        f"/api/v1/bookings/{booking_id}/complete", json={"actual_fare": 40.0}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "COMPLETED"
    assert resp.json()["actual_fare"] == 40.0

    trust = await client.get("/api/v1/admin/riders/r1/trust")
    assert trust.status_code == 200
    assert trust.json()["completed_bookings"] == 1
    assert trust.json()["trust_score"] == 100.0


@pytest.mark.asyncio
async def test_second_accept_conflicts(client: AsyncClient):
    booking_id = (await create_booking(client))["id"]

    first = await client.post(f"/api/v1/bookings/{booking_id}/accept", json={"driver_id": "d1"})
    second = await client.post(f"/api/v1/bookings/{booking_id}/accept", json={"driver_id": "d2"})

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json() == {"detail": "Booking already taken", "reason": "CONFLICT"}

    current = await client.get(f"/api/v1/bookings/{booking_id}")
    assert current.json()["assigned_driver_id"] == "d1"


@pytest.mark.asyncio
async def test_invalid_transition(client: AsyncClient):
    booking_id = (await create_booking(client))["id"]

    resp = await client.post(f"/api/v1/bookings/{booking_id}/complete")
    assert resp.status_code == 409
    body = resp.json()
    assert body["reason"] == "INVALID_TRANSITION"
    assert body["from"] == "PENDING"
    assert body["attempted"] == "complete"


@pytest.mark.asyncio
async def test_cancel_by_driver(client: AsyncClient):
    booking_id = (await create_booking(client, "r2"))["id"]

    resp = await client.post(
        f"/api/v1/bookings/{booking_id}/cancel", json={"actor": "DRIVER"}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"
    assert resp.json()["cancelled_by"] == "DRIVER"

    again = await client.post(f"/api/v1/bookings/{booking_id}/cancel")
    assert again.status_code == 409

    trust = (await client.get("/api/v1/admin/riders/r2/trust")).json()
    assert trust["cancelled_bookings"] == 1
    assert trust["trust_score"] == 95.0


@pytest.mark.asyncio
async def test_reject_and_active_list(client: AsyncClient):
    kept = (await create_booking(client, "r1"))["id"]
    rejected = (await create_booking(client, "r3"))["id"]

    resp = await client.post(f"/api/v1/bookings/{rejected}/reject")
    assert resp.json()["status"] == "REJECTED"

    active = await client.get("/api/v1/bookings/active")
    assert [b["id"] for b in active.json()] == [kept]


@pytest.mark.asyncio
async def test_channel(client: AsyncClient):
    booking_id = (await create_booking(client))["id"]

    early = await client.post(f"/api/v1/bookings/{booking_id}/channel")
    assert early.status_code == 409

    await client.post(f"/api/v1/bookings/{booking_id}/accept", json={"driver_id": "d1"})
    first = await client.post(f"/api/v1/bookings/{booking_id}/channel")
    second = await client.post(f"/api/v1/bookings/{booking_id}/channel")
    assert first.status_code == 200
    assert first.json()["channel_id"] == second.json()["channel_id"]


@pytest.mark.asyncio
async def test_rider_trust_unknown(client: AsyncClient):
    resp = await client.get("/api/v1/admin/riders/nobody/trust")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_rider_trust_reports_admission(client: AsyncClient):
    await create_booking(client, "r3")
    data = (await client.get("/api/v1/admin/riders/r3/trust")).json()
    assert data["admission"] == "TOO_SOON_SINCE_LAST_BOOKING"
    assert data["last_booking_time"] is not None
