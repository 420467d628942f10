"""Boundary with the platform location service."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol

from .errors import LocationError
from .models import Coordinate, _utc_now
from .stores import STORE_ERRORS


class LocationErrorCode(IntEnum):
    """Failure causes, numbered like the W3C geolocation error codes."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


@dataclass(frozen=True)
class PositionOptions:
    """Options passed through to the provider. The timeout is not enforced here."""

    high_accuracy: bool = True
    timeout_ms: int = 10_000
    max_age_ms: int = 300_000


class LocationProvider(Protocol):
    """Protocol for platform location services.

    Implementations return the current position, or raise ``LocationError``
    with a ``LocationErrorCode`` when the platform cannot provide one.
    """

    async def get_current_position(self, options: PositionOptions) -> Coordinate:
        ...


class StaticLocationProvider:
    """Location provider that always reports the same position (or the same failure)."""

    def __init__(
        self,
        coordinate: Coordinate | None = None,
        error_code: LocationErrorCode | None = None,
    ):
        if coordinate is None and error_code is None:
            error_code = LocationErrorCode.POSITION_UNAVAILABLE
        self.coordinate = coordinate
        self.error_code = error_code
        self.calls: list[PositionOptions] = []

    async def get_current_position(self, options: PositionOptions) -> Coordinate:
        self.calls.append(options)
        if self.error_code is not None:
            raise LocationError(self.error_code, location_error_message(self.error_code))
        assert self.coordinate is not None
        if self.coordinate.timestamp is None:
            return Coordinate(
                latitude=self.coordinate.latitude,
                longitude=self.coordinate.longitude,
                accuracy=self.coordinate.accuracy,
                timestamp=_utc_now(),
            )
        return self.coordinate


def location_error_message(code: int | None) -> str:
    """French user-facing message for a location failure code."""
    if code == LocationErrorCode.PERMISSION_DENIED:
        return STORE_ERRORS["GEOLOCATION_PERMISSION_DENIED"]
    if code == LocationErrorCode.TIMEOUT:
        return STORE_ERRORS["GEOLOCATION_TIMEOUT"]
    return STORE_ERRORS["GEOLOCATION_POSITION_UNAVAILABLE"]
