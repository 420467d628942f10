"""Data models for monepiceriz."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any


def _format_timestamp(value: datetime) -> str:
    """Format an aware datetime as an ISO 8601 UTC string."""
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return _format_timestamp(datetime.now(timezone.utc))


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp written by ``_utc_now``."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


# Models for stores and geolocation


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 position in degrees, optionally with accuracy (m) and capture time."""

    latitude: float
    longitude: float
    accuracy: float | None = None
    timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "latitude": self.latitude,
            "longitude": self.longitude,
        }
        if self.accuracy is not None:
            result["accuracy"] = self.accuracy
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Coordinate":
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy=data.get("accuracy"),
            timestamp=data.get("timestamp"),
        )


@dataclass(frozen=True)
class OpeningHours:
    """Opening window for one weekday, as "HH:MM" strings."""

    open: str
    close: str
    closed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"open": self.open, "close": self.close, "closed": self.closed}


@dataclass(frozen=True)
class Store:
    """A physical store. The set of stores is static configuration."""

    code: str
    name: str
    location: Coordinate
    address: str
    zone: str
    phone: str
    email: str
    operating_hours: dict[str, OpeningHours]  # keyed by english weekday name
    delivery_radius: float  # km
    is_active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "location": self.location.to_dict(),
            "address": self.address,
            "zone": self.zone,
            "phone": self.phone,
            "email": self.email,
            "operating_hours": {
                day: hours.to_dict() for day, hours in self.operating_hours.items()
            },
            "delivery_radius": self.delivery_radius,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class StoreDistance:
    """A store paired with its distance (km) from some user location."""

    store: Store
    distance: float

    def to_dict(self) -> dict[str, Any]:
        result = self.store.to_dict()
        result["distance"] = self.distance
        return result


@dataclass
class StoreSelectionState:
    """Store selection state. Only the persisted fields live here.

    Loading/error flags belong to the cache object, not to this record.
    """

    selected_store: str
    user_location: Coordinate | None = None
    nearest_store: str | None = None
    last_location_update: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "selected_store": self.selected_store,
            "user_location": self.user_location.to_dict() if self.user_location else None,
            "nearest_store": self.nearest_store,
            "last_location_update": self.last_location_update,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoreSelectionState":
        location = data.get("user_location")
        return cls(
            selected_store=data.get("selected_store", ""),
            user_location=Coordinate.from_dict(location) if location else None,
            nearest_store=data.get("nearest_store"),
            last_location_update=data.get("last_location_update"),
        )


# Models for the cart


@dataclass(frozen=True)
class Product:
    """The catalog fields the cart reads. Other catalog data is carried in ``extra``."""

    id: str
    price: Decimal
    name: str = ""
    is_promo: bool = False
    promo_price: Decimal | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def effective_price(self) -> Decimal:
        """Promotional price when on promotion and set, else the base price."""
        if self.is_promo and self.promo_price:
            return self.promo_price
        return self.price

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "price": str(self.price),
            "is_promo": self.is_promo,
            "promo_price": str(self.promo_price) if self.promo_price is not None else None,
        }
        if self.extra:
            result["extra"] = self.extra
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        # Accept the catalog's camelCase keys as well as our own
        promo_price = data.get("promo_price", data.get("promoPrice"))
        return cls(
            id=str(data["id"]),
            price=_to_decimal(data["price"]),
            name=data.get("name", ""),
            is_promo=bool(data.get("is_promo", data.get("isPromo", False))),
            promo_price=_to_decimal(promo_price) if promo_price is not None else None,
            extra=data.get("extra", {}),
        )


@dataclass
class CartLine:
    """One product with its quantity (always >= 1)."""

    product: Product
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.product.effective_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {"product": self.product.to_dict(), "quantity": self.quantity}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CartLine":
        return cls(
            product=Product.from_dict(data["product"]),
            quantity=int(data["quantity"]),
        )


@dataclass(frozen=True)
class Cart:
    """Derived view of the cart, recomputed on every read."""

    lines: list[CartLine]
    item_count: int
    subtotal: Decimal
    delivery_fee: Decimal
    preparation_fee: Decimal
    total: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "lines": [
                {**line.to_dict(), "line_total": str(line.line_total)}
                for line in self.lines
            ],
            "item_count": self.item_count,
            "subtotal": str(self.subtotal),
            "delivery_fee": str(self.delivery_fee),
            "preparation_fee": str(self.preparation_fee),
            "total": str(self.total),
        }
