"""Great-circle distance between coordinates."""

import math

from .models import Coordinate

EARTH_RADIUS_KM = 6371.0


def calculate_distance(point1: Coordinate, point2: Coordinate) -> float:
    """
    Distance between two points in kilometers, using the haversine formula.

    Symmetric, and 0.0 for identical points. Coordinates are not range-checked.
    """
    d_lat = math.radians(point2.latitude - point1.latitude)
    d_lon = math.radians(point2.longitude - point1.longitude)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(point1.latitude))
        * math.cos(math.radians(point2.latitude))
        * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def format_distance(distance: float) -> str:
    """Format a distance in km for display ("850m", "2.4km")."""
    if distance < 1:
        return f"{round(distance * 1000)}m"
    return f"{distance:.1f}km"
