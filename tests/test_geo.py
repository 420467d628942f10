"""Tests for great-circle distance."""

import pytest

from conftest import COCODY, KOUMASSI
from monepiceriz.geo import calculate_distance, format_distance
from monepiceriz.models import Coordinate


class TestCalculateDistance:
    def test_identical_points_are_zero(self):
        assert calculate_distance(COCODY, COCODY) == 0.0

    def test_symmetric(self):
        points = [
            COCODY,
            KOUMASSI,
            Coordinate(latitude=48.8566, longitude=2.3522),
            Coordinate(latitude=-33.8688, longitude=151.2093),
        ]
        for a in points:
            for b in points:
                assert calculate_distance(a, b) == pytest.approx(calculate_distance(b, a))

    def test_between_stores(self):
        # Cocody and Koumassi are about 10.5 km apart
        distance = calculate_distance(COCODY, KOUMASSI)
        assert 10.0 < distance < 11.0

    def test_one_degree_of_latitude(self):
        a = Coordinate(latitude=0.0, longitude=0.0)
        b = Coordinate(latitude=1.0, longitude=0.0)
        assert calculate_distance(a, b) == pytest.approx(111.195, abs=0.01)

    def test_antipodes(self):
        a = Coordinate(latitude=0.0, longitude=0.0)
        b = Coordinate(latitude=0.0, longitude=180.0)
        assert calculate_distance(a, b) == pytest.approx(20015.09, abs=0.1)

    def test_accuracy_and_timestamp_are_ignored(self):
        fix = Coordinate(
            latitude=COCODY.latitude,
            longitude=COCODY.longitude,
            accuracy=25.0,
            timestamp="2026-03-02T10:00:00Z",
        )
        assert calculate_distance(fix, COCODY) == 0.0


class TestFormatDistance:
    def test_metres_below_one_km(self):
        assert format_distance(0.85) == "850m"
        assert format_distance(0.0) == "0m"

    def test_kilometres(self):
        assert format_distance(2.44) == "2.4km"
        assert format_distance(1.0) == "1.0km"
