"""
Store table and nearest-store resolution.

The chain runs two physical stores in Abidjan. Their configuration is static;
``StoreResolver`` answers distance, delivery-radius and opening-hours questions
against a store table (the static one by default).
"""

from datetime import datetime, timezone
from typing import Iterable

from .geo import calculate_distance, format_distance
from .models import Coordinate, OpeningHours, Store, StoreDistance

# Abidjan is on GMT all year, without daylight saving
STORE_TIMEZONE = timezone.utc

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_WEEKDAY_HOURS = OpeningHours(open="07:00", close="21:00")
_STANDARD_HOURS = {
    "monday": _WEEKDAY_HOURS,
    "tuesday": _WEEKDAY_HOURS,
    "wednesday": _WEEKDAY_HOURS,
    "thursday": _WEEKDAY_HOURS,
    "friday": _WEEKDAY_HOURS,
    "saturday": OpeningHours(open="07:00", close="22:00"),
    "sunday": OpeningHours(open="08:00", close="20:00"),
}

STORES: dict[str, Store] = {
    "COCODY": Store(
        code="COCODY",
        name="MonEpice&Riz Cocody",
        location=Coordinate(latitude=5.3515625, longitude=-3.9936523),
        address="Boulevard de la République, Cocody",
        zone="Cocody",
        phone="0161888888",
        email="cocody@monepiceriz.ci",
        operating_hours=dict(_STANDARD_HOURS),
        delivery_radius=15,
    ),
    "KOUMASSI": Store(
        code="KOUMASSI",
        name="MonEpice&Riz Koumassi",
        location=Coordinate(latitude=5.2897949, longitude=-3.9208984),
        address="Avenue principale, Koumassi",
        zone="Koumassi",
        phone="0172089090",
        email="koumassi@monepiceriz.ci",
        operating_hours=dict(_STANDARD_HOURS),
        delivery_radius=15,
    ),
}

# Fallback when no location is available
DEFAULT_STORE = "COCODY"

ALL_STORE_CODES: tuple[str, ...] = tuple(STORES)

STORE_ERRORS = {
    "GEOLOCATION_NOT_SUPPORTED": "La géolocalisation n'est pas supportée par votre navigateur",
    "GEOLOCATION_PERMISSION_DENIED": "L'accès à votre position a été refusé",
    "GEOLOCATION_POSITION_UNAVAILABLE": "Votre position n'est pas disponible",
    "GEOLOCATION_TIMEOUT": "La demande de géolocalisation a expiré",
    "NO_STORES_IN_RANGE": "Aucun magasin ne livre dans votre zone",
    "STORE_NOT_FOUND": "Magasin introuvable",
    "STORE_CLOSED": "Ce magasin est actuellement fermé",
    "INVALID_COORDINATES": "Coordonnées géographiques invalides",
}

STORE_MESSAGES = {
    "NEAREST_STORE_SELECTED": "Le magasin le plus proche a été sélectionné automatiquement",
    "STORE_CHANGED": "Magasin modifié avec succès",
    "LOCATION_DETECTED": "Votre position a été détectée avec succès",
    "DELIVERY_AVAILABLE": "Livraison disponible dans votre zone",
}


def is_valid_store_code(code: object) -> bool:
    """Check membership in the static store code set."""
    return isinstance(code, str) and code in STORES


class StoreResolver:
    """Answers store questions for a fixed, ordered table of stores."""

    def __init__(self, stores: Iterable[Store] | None = None):
        """
        Initialize StoreResolver.

        Args:
            stores: Store table in resolution order (defaults to ``STORES``).
                Must not be empty.
        """
        table = list(stores) if stores is not None else list(STORES.values())
        if not table:
            raise ValueError("StoreResolver needs at least one store")
        self._stores: dict[str, Store] = {store.code: store for store in table}

    @property
    def stores(self) -> list[Store]:
        return list(self._stores.values())

    @property
    def codes(self) -> list[str]:
        return list(self._stores)

    def is_valid_store_code(self, code: object) -> bool:
        return isinstance(code, str) and code in self._stores

    def get_store(self, code: str) -> Store | None:
        """Get a store by code, or None when the code is unknown."""
        if not self.is_valid_store_code(code):
            return None
        return self._stores[code]

    def nearest_store(self, user_location: Coordinate) -> StoreDistance:
        """
        Find the store closest to the user.

        Ties go to the store listed first in the table.
        """
        nearest: StoreDistance | None = None
        for store in self._stores.values():
            distance = calculate_distance(user_location, store.location)
            if nearest is None or distance < nearest.distance:
                nearest = StoreDistance(store=store, distance=distance)
        assert nearest is not None
        return nearest

    def stores_with_distances(self, user_location: Coordinate) -> list[StoreDistance]:
        """All stores with their distance from the user, closest first (stable on ties)."""
        result = [
            StoreDistance(store=store, distance=calculate_distance(user_location, store.location))
            for store in self._stores.values()
        ]
        return sorted(result, key=lambda sd: sd.distance)

    def is_within_delivery_radius(self, user_location: Coordinate, code: str) -> bool:
        """True when the user is within the store's delivery radius (boundary included).

        Unknown store codes are never within radius.
        """
        store = self.get_store(code)
        if store is None:
            return False
        return calculate_distance(user_location, store.location) <= store.delivery_radius

    def available_delivery_stores(self, user_location: Coordinate) -> list[StoreDistance]:
        """Stores that deliver to the user, closest first."""
        return [
            sd
            for sd in self.stores_with_distances(user_location)
            if sd.distance <= sd.store.delivery_radius
        ]

    def opening_hours(self, code: str, at: datetime) -> OpeningHours | None:
        """Opening window for the weekday of ``at``, or None if closed that day."""
        store = self.get_store(code)
        if store is None:
            return None
        local = _to_store_time(at)
        hours = store.operating_hours.get(WEEKDAYS[local.weekday()])
        if hours is None or hours.closed:
            return None
        return hours

    def today_opening_hours(self, code: str, now: datetime | None = None) -> OpeningHours | None:
        return self.opening_hours(code, now or datetime.now(STORE_TIMEZONE))

    def is_store_open(self, code: str, at: datetime | None = None) -> bool:
        """
        Check whether a store is open at a given time (defaults to now).

        Both ends of the window are inclusive at minute resolution: with a
        21:00 close, 21:00 itself still counts as open.
        """
        store = self.get_store(code)
        if store is None or not store.is_active:
            return False

        at = at or datetime.now(STORE_TIMEZONE)
        hours = self.opening_hours(code, at)
        if hours is None:
            return False

        current_time = _to_store_time(at).strftime("%H:%M")
        return hours.open <= current_time <= hours.close


def _to_store_time(at: datetime) -> datetime:
    """Aware datetimes are converted to store time; naive ones are taken as store time."""
    if at.tzinfo is None:
        return at
    return at.astimezone(STORE_TIMEZONE)


def store_display_name(store_distance: StoreDistance) -> str:
    """Store name followed by its formatted distance."""
    return f"{store_distance.store.name} ({format_distance(store_distance.distance)})"
