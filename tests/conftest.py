"""Pytest fixtures for monepiceriz tests."""

import tempfile
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from monepiceriz.models import Coordinate, Product
from monepiceriz.storage import JsonFileStorage, MemoryStorage

COCODY = Coordinate(latitude=5.3515625, longitude=-3.9936523)
KOUMASSI = Coordinate(latitude=5.2897949, longitude=-3.9208984)


class FixedClock:
    """Clock returning a settable aware datetime."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def file_storage(temp_dir):
    return JsonFileStorage(temp_dir)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def rice():
    return Product(id="riz-25kg", name="Riz parfumé 25kg", price=Decimal("18500"))


@pytest.fixture
def oil():
    """A product on promotion."""
    return Product(
        id="huile-5l",
        name="Huile 5L",
        price=Decimal("6000"),
        is_promo=True,
        promo_price=Decimal("5200"),
    )


def offset(point: Coordinate, north_km: float = 0.0, east_km: float = 0.0) -> Coordinate:
    """Shift a coordinate by roughly the given distances near the equator."""
    return Coordinate(
        latitude=point.latitude + north_km / 111.195,
        longitude=point.longitude + east_km / 111.195,
    )
