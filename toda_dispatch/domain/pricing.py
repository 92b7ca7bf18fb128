"""
Fare Engine  (Strategy Pattern)
===============================

Formula
-------
Trip_Fare   = Base_Fare + max(0, Distance - Base_Distance) x Rate_Per_KM
Travel_Fee  = max(0, Driver_To_Pickup - Free_Radius) x Driver_Rate_Per_KM
Total       = Trip_Fare + Travel_Fee

Both components are non-decreasing in their distance, so the total is too.
The schedule is data (``FareSchedule``), loaded from settings; nothing
here hard-codes a tariff beyond the defaults.

Complexity: O(1) per quote.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .distance import distance_km
from .entities import Coordinate


@dataclass(frozen=True)
class FareSchedule:
    base_fare: float = 25.0  # PHP
    base_distance_km: float = 2.0  # covered by the base fare
    rate_per_km: float = 10.0  # PHP / km beyond the base distance
    driver_free_radius_km: float = 1.0
    driver_rate_per_km: float = 5.0  # PHP / km of driver repositioning

    def __post_init__(self) -> None:
        for name in (
            "base_fare",
            "base_distance_km",
            "rate_per_km",
            "driver_free_radius_km",
            "driver_rate_per_km",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")


@dataclass(frozen=True)
class FareBreakdown:
    trip_distance_km: float
    driver_to_pickup_km: float
    trip_fare: float
    driver_travel_fee: float
    total_fare: float


# ── Strategy hierarchy ────────────────────────────────────────────────


class FareStrategy(ABC):
    @abstractmethod
    def calculate(self, distance_km: float) -> float: ...


class TieredFare(FareStrategy):
    """Flat base fare for the first stretch, then a per-km rate."""

    def __init__(self, base_fare: float, base_distance_km: float, rate_per_km: float):
        self.base_fare = base_fare
        self.base_distance_km = base_distance_km
        self.rate_per_km = rate_per_km

    def calculate(self, distance_km: float) -> float:
        if distance_km < 0:
            raise ValueError("distance must not be negative")
        extra = max(0.0, distance_km - self.base_distance_km)
        return self.base_fare + extra * self.rate_per_km


class DriverTravelFee(FareStrategy):
    """Charge for the driver's trip to the pickup point beyond a free radius."""

    def __init__(self, free_radius_km: float, rate_per_km: float):
        self.free_radius_km = free_radius_km
        self.rate_per_km = rate_per_km

    def calculate(self, distance_km: float) -> float:
        if distance_km < 0:
            raise ValueError("distance must not be negative")
        return max(0.0, distance_km - self.free_radius_km) * self.rate_per_km


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used by the dispatch coordinator and the API layer."""

    def __init__(self, schedule: FareSchedule = FareSchedule()):
        self.schedule = schedule
        self.trip = TieredFare(
            schedule.base_fare, schedule.base_distance_km, schedule.rate_per_km
        )
        self.travel = DriverTravelFee(
            schedule.driver_free_radius_km, schedule.driver_rate_per_km
        )

    def estimate_fare(self, distance_km: float) -> float:
        return round(self.trip.calculate(distance_km), 2)

    def quote(
        self,
        pickup: Coordinate,
        dropoff: Coordinate,
        driver_location: Optional[Coordinate] = None,
    ) -> FareBreakdown:
        trip_km = distance_km(pickup, dropoff)
        driver_km = distance_km(driver_location, pickup) if driver_location else 0.0
        trip_fare = self.trip.calculate(trip_km)
        travel_fee = self.travel.calculate(driver_km)
        return FareBreakdown(
            trip_distance_km=round(trip_km, 3),
            driver_to_pickup_km=round(driver_km, 3),
            trip_fare=round(trip_fare, 2),
            driver_travel_fee=round(travel_fee, 2),
            total_fare=round(trip_fare + travel_fee, 2),
        )
