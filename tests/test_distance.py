"""Unit tests for great-circle distance."""

import math

import pytest

from toda_dispatch.domain.distance import distance_km, haversine_km
from toda_dispatch.domain.entities import Coordinate
from toda_dispatch.domain.errors import InvalidCoordinateError


class TestHaversine:
    def test_same_point_is_zero(self):
        p = Coordinate(14.749, 121.051)
        assert distance_km(p, p) == 0.0

    def test_equator_hundredth_degree(self):
        d = distance_km(Coordinate(0.0, 0.0), Coordinate(0.01, 0.0))
        assert d == pytest.approx(1.11, rel=0.01)

    def test_symmetric(self):
        a, b = Coordinate(14.749, 121.051), Coordinate(14.601, 120.984)
        assert distance_km(a, b) == pytest.approx(distance_km(b, a), abs=1e-9)

    def test_known_distance(self):
        # Camarin terminal -> Zabarte Rd, roughly 1.4 km
        d = haversine_km(14.7490, 121.0510, 14.7560, 121.0620)
        assert 1.0 < d < 2.0

    def test_antipodes_do_not_fail(self):
        d = haversine_km(0.0, 0.0, 0.0, 180.0)
        assert d == pytest.approx(math.pi * 6371.0, rel=1e-6)


class TestCoordinateValidation:
    @pytest.mark.parametrize(
        "lat,lng",
        [(90.5, 0.0), (-91.0, 0.0), (0.0, 180.1), (0.0, -200.0), (math.nan, 0.0)],
    )
    def test_out_of_range_rejected(self, lat, lng):
        with pytest.raises(InvalidCoordinateError):
            Coordinate(lat, lng)

    def test_raw_haversine_rejects_out_of_range(self):
        with pytest.raises(InvalidCoordinateError):
            haversine_km(14.7, 121.0, 95.0, 121.0)

    def test_boundaries_accepted(self):
        Coordinate(90.0, 180.0)
        Coordinate(-90.0, -180.0)
