"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 9 sample riders around Barangay 177, Camarin (mix of trust profiles)
  - a few bookings through the dispatch coordinator, so they pass the same
    admission rules as real requests, then walks some of them through the
    lifecycle (accepted, in progress, completed)
"""

import asyncio

from sqlalchemy import text

from toda_dispatch.domain.entities import Coordinate
from toda_dispatch.domain.enums import CancelActor
from toda_dispatch.domain.errors import ValidationError
from toda_dispatch.infrastructure.database import async_session_factory, engine
from toda_dispatch.infrastructure.models import RiderModel
from toda_dispatch.services.dispatch import BookingRequest
from toda_dispatch.wiring import build_coordinator

# Barangay 177 terminal (approx)
TERMINAL = Coordinate(14.7490, 121.0510)


RIDERS = [
    {"id": "rider-001", "name": "Juan Dela Cruz", "phone": "09171230001", "verified": True},
    {"id": "rider-002", "name": "Maria Santos", "phone": "09171230002", "verified": True},
    {"id": "rider-003", "name": "Jose Reyes", "phone": "09171230003", "verified": True},
    {"id": "rider-004", "name": "Ana Bautista", "phone": "09171230004", "verified": True},
    {"id": "rider-005", "name": "Pedro Garcia", "phone": "09171230005", "verified": True},
    # Refused on admission: blocked, low trust, frequent canceller, unverified
    {"id": "rider-006", "name": "Carlo Mendoza", "phone": "09171230006", "verified": True, "blocked": True},
    {"id": "rider-007", "name": "Liza Ramos", "phone": "09171230007", "verified": True, "trust": 35.0},
    {"id": "rider-008", "name": "Nico Villanueva", "phone": "09171230008", "verified": True,
     "total": 10, "completed": 5, "cancelled": 5},
    {"id": "rider-009", "name": "Rosa Aquino", "phone": "09171230009", "verified": False},
]

TRIPS = [
    ("rider-001", (14.7495, 121.0515), (14.7560, 121.0580), "Camarin Rd", "Zabarte Rd"),
    ("rider-002", (14.7480, 121.0500), (14.7420, 121.0450), "Deparo", "Bagumbong"),
    ("rider-003", (14.7500, 121.0520), (14.7550, 121.0470), "Phase 8", "Kiko Market"),
    ("rider-004", (14.7470, 121.0530), (14.7590, 121.0560), "Tala", "Susano Rd"),
    ("rider-005", (14.7510, 121.0500), (14.7455, 121.0545), "Church", "Camarin Elem."),
    ("rider-006", (14.7490, 121.0510), (14.7530, 121.0540), "Terminal", "Barangay Hall"),
    ("rider-007", (14.7490, 121.0510), (14.7530, 121.0540), "Terminal", "Barangay Hall"),
    ("rider-008", (14.7490, 121.0510), (14.7530, 121.0540), "Terminal", "Barangay Hall"),
    ("rider-009", (14.7490, 121.0510), (14.7530, 121.0540), "Terminal", "Barangay Hall"),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM riders"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Riders ────────────────────────────────────────────────────
        for r in RIDERS:
            session.add(
                RiderModel(
                    id=r["id"],
                    name=r["name"],
                    phone_number=r["phone"],
                    is_phone_verified=r["verified"],
                    is_blocked=r.get("blocked", False),
                    trust_score=r.get("trust", 100.0),
                    total_bookings=r.get("total", 0),
                    completed_bookings=r.get("completed", 0),
                    cancelled_bookings=r.get("cancelled", 0),
                )
            )
        await session.commit()
        print(f"  Created {len(RIDERS)} riders")

    # ── Bookings ──────────────────────────────────────────────────────
    coordinator = build_coordinator(async_session_factory)
    names = {r["id"]: (r["name"], r["phone"]) for r in RIDERS}
    created = []
    for rider_id, pickup, dropoff, pickup_label, dropoff_label in TRIPS:
        name, phone = names[rider_id]
        try:
            booking = await coordinator.request_booking(
                BookingRequest(
                    rider_id=rider_id,
                    rider_name=name,
                    rider_phone=phone,
                    pickup=Coordinate(*pickup),
                    dropoff=Coordinate(*dropoff),
                    pickup_label=pickup_label,
                    dropoff_label=dropoff_label,
                )
            )
        except ValidationError as exc:
            print(f"  Refused {rider_id}: {exc.reason.value}")
            continue
        created.append(booking)
        print(f"  Booking {booking.id} for {rider_id}: PHP {booking.estimated_fare:.2f}")

    # ── Lifecycle walk-through ────────────────────────────────────────
    if len(created) >= 4:
        await coordinator.accept(created[0].id, "driver-101", "TRC-0177")
        await coordinator.accept(created[1].id, "driver-102", "TRC-0178")
        await coordinator.start(created[1].id)
        await coordinator.accept(created[2].id, "driver-103", "TRC-0179")
        await coordinator.start(created[2].id)
        await coordinator.complete(created[2].id)
        await coordinator.cancel(created[3].id, CancelActor.RIDER)
        print("  Walked 4 bookings through the lifecycle")

    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
