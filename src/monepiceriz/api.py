"""FastAPI REST API for store selection, cart and phone validation."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .cart import CartAggregator
from .errors import (
    CartItemNotFoundError,
    InvalidPhoneNumberError,
    InvalidQuantityError,
    InvalidSchemaVersionError,
    MonepicerizError,
    StoreNotFoundError,
)
from .geo import format_distance
from .location import LocationProvider, StaticLocationProvider
from .models import Cart, Coordinate, OpeningHours, Product, Store
from .phone import validate_ivorian_phone
from .selection import StoreSelectionCache
from .storage import JsonFileStorage, KeyValueStorage
from .stores import StoreResolver


# --- Pydantic Schemas ---


class CoordinateSchema(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(None, ge=0, description="Accuracy radius in meters")
    timestamp: Optional[str] = None


class OpeningHoursSchema(BaseModel):
    open: str
    close: str
    closed: bool = False


class StoreSchema(BaseModel):
    code: str
    name: str
    location: CoordinateSchema
    address: str
    zone: str
    phone: str
    email: str
    operating_hours: dict[str, OpeningHoursSchema]
    delivery_radius: float
    is_active: bool
    distance_km: Optional[float] = None
    distance_display: Optional[str] = None


class StoreListResponse(BaseModel):
    stores: list[StoreSchema]
    count: int


class NearestStoreResponse(BaseModel):
    store: StoreSchema
    distance_km: float
    distance_display: str
    within_delivery_radius: bool


class StoreOpenResponse(BaseModel):
    code: str
    is_open: bool
    hours: Optional[OpeningHoursSchema]


class PhoneValidateRequest(BaseModel):
    phone: str = Field(..., description="Phone number in any accepted format")


class FormattedPhoneSchema(BaseModel):
    international: str
    national: str
    local: str
    display: str


class PhoneValidationSchema(BaseModel):
    is_valid: bool
    format: Optional[str] = None
    operator: Optional[str] = None
    cleaned: Optional[str] = None
    formatted: Optional[FormattedPhoneSchema] = None
    error: Optional[str] = None


class SelectionSchema(BaseModel):
    selected_store: str
    nearest_store: Optional[str]
    user_location: Optional[CoordinateSchema]
    last_location_update: Optional[str]
    distance_to_selected_store_km: Optional[float]
    status: str
    location_error: Optional[str] = None


class SelectStoreRequest(BaseModel):
    store_code: str


class StalenessCheckRequest(BaseModel):
    location: Optional[CoordinateSchema] = Field(
        None, description="Fresh position, or null when location services are unavailable"
    )


class StoreUpdateCheckSchema(BaseModel):
    should_update: bool
    reason: Optional[str] = None
    distance_km: Optional[float] = None


class ProductSchema(BaseModel):
    id: str
    price: Decimal = Field(..., ge=0)
    name: str = ""
    is_promo: bool = False
    promo_price: Optional[Decimal] = Field(None, ge=0)


class CartLineSchema(BaseModel):
    product: ProductSchema
    quantity: int
    line_total: Decimal


class CartSchema(BaseModel):
    lines: list[CartLineSchema]
    item_count: int
    subtotal: Decimal
    delivery_fee: Decimal
    preparation_fee: Decimal
    total: Decimal


class CartAddRequest(BaseModel):
    product: ProductSchema
    quantity: int = 1


class CartUpdateRequest(BaseModel):
    quantity: int = Field(..., description="New quantity; 0 or less removes the line")


class ErrorResponse(BaseModel):
    detail: str
    error_type: str


# --- Helper Functions ---


def get_storage(request: Request) -> KeyValueStorage:
    return request.app.state.storage


def get_resolver(request: Request) -> StoreResolver:
    return request.app.state.resolver


def get_selection(
    request: Request, location: Coordinate | None = None
) -> StoreSelectionCache:
    """Load the store selection, using ``location`` as the fresh position if given."""
    provider: LocationProvider | None = request.app.state.location_provider
    if location is not None:
        provider = StaticLocationProvider(location)
    return StoreSelectionCache(
        storage=get_storage(request),
        resolver=get_resolver(request),
        location_provider=provider,
    )


def get_cart(request: Request) -> CartAggregator:
    return CartAggregator(storage=get_storage(request))


def store_to_schema(store: Store, distance: float | None = None) -> StoreSchema:
    return StoreSchema(
        code=store.code,
        name=store.name,
        location=CoordinateSchema(**store.location.to_dict()),
        address=store.address,
        zone=store.zone,
        phone=store.phone,
        email=store.email,
        operating_hours={
            day: OpeningHoursSchema(**hours.to_dict())
            for day, hours in store.operating_hours.items()
        },
        delivery_radius=store.delivery_radius,
        is_active=store.is_active,
        distance_km=distance,
        distance_display=format_distance(distance) if distance is not None else None,
    )


def selection_to_schema(cache: StoreSelectionCache) -> SelectionSchema:
    location = cache.user_location
    return SelectionSchema(
        selected_store=cache.selected_store,
        nearest_store=cache.nearest_store,
        user_location=CoordinateSchema(**location.to_dict()) if location else None,
        last_location_update=cache.last_location_update,
        distance_to_selected_store_km=cache.distance_to_selected_store(),
        status=cache.status.value,
        location_error=cache.location_error,
    )


def cart_to_schema(cart: Cart) -> CartSchema:
    return CartSchema(
        lines=[
            CartLineSchema(
                product=ProductSchema(
                    id=line.product.id,
                    price=line.product.price,
                    name=line.product.name,
                    is_promo=line.product.is_promo,
                    promo_price=line.product.promo_price,
                ),
                quantity=line.quantity,
                line_total=line.line_total,
            )
            for line in cart.lines
        ],
        item_count=cart.item_count,
        subtotal=cart.subtotal,
        delivery_fee=cart.delivery_fee,
        preparation_fee=cart.preparation_fee,
        total=cart.total,
    )


def _hours_schema(hours: OpeningHours | None) -> OpeningHoursSchema | None:
    return OpeningHoursSchema(**hours.to_dict()) if hours else None


def _to_coordinate(schema: CoordinateSchema) -> Coordinate:
    return Coordinate(
        latitude=schema.latitude,
        longitude=schema.longitude,
        accuracy=schema.accuracy,
        timestamp=schema.timestamp,
    )


# --- Endpoints ---


router = APIRouter(prefix="/api")


@router.get("/health")
def health_check(request: Request):
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "store_count": len(get_resolver(request).stores),
    }


# --- Store Endpoints ---


@router.get("/stores", response_model=StoreListResponse)
def list_stores(
    request: Request,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lon: Optional[float] = Query(None, ge=-180, le=180),
):
    """List stores; closest first when a position is given."""
    resolver = get_resolver(request)
    if lat is None or lon is None:
        stores = [store_to_schema(s) for s in resolver.stores]
    else:
        location = Coordinate(latitude=lat, longitude=lon)
        stores = [
            store_to_schema(sd.store, sd.distance)
            for sd in resolver.stores_with_distances(location)
        ]
    return StoreListResponse(stores=stores, count=len(stores))


@router.get("/stores/nearest", response_model=NearestStoreResponse)
def nearest_store(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
):
    """Find the store nearest to a position."""
    resolver = get_resolver(request)
    location = Coordinate(latitude=lat, longitude=lon)
    nearest = resolver.nearest_store(location)
    return NearestStoreResponse(
        store=store_to_schema(nearest.store, nearest.distance),
        distance_km=nearest.distance,
        distance_display=format_distance(nearest.distance),
        within_delivery_radius=resolver.is_within_delivery_radius(location, nearest.store.code),
    )


@router.get("/stores/{code}", response_model=StoreSchema)
def get_store(request: Request, code: str):
    """Get a single store by code."""
    store = get_resolver(request).get_store(code)
    if store is None:
        raise StoreNotFoundError(code)
    return store_to_schema(store)


@router.get("/stores/{code}/open", response_model=StoreOpenResponse)
def store_open_status(request: Request, code: str, at: Optional[datetime] = Query(None)):
    """Whether a store is open at ``at`` (default: now)."""
    resolver = get_resolver(request)
    if resolver.get_store(code) is None:
        raise StoreNotFoundError(code)
    hours = resolver.opening_hours(code, at) if at else resolver.today_opening_hours(code)
    return StoreOpenResponse(
        code=code,
        is_open=resolver.is_store_open(code, at),
        hours=_hours_schema(hours),
    )


# --- Phone Endpoints ---


@router.post("/phone/validate", response_model=PhoneValidationSchema)
def validate_phone(body: PhoneValidateRequest):
    """Validate an Ivorian phone number. Invalid numbers are a normal response."""
    return PhoneValidationSchema(**validate_ivorian_phone(body.phone).to_dict())


# --- Selection Endpoints ---


@router.get("/selection", response_model=SelectionSchema)
def get_store_selection(request: Request):
    """Get the current store selection."""
    return selection_to_schema(get_selection(request))


@router.put("/selection", response_model=SelectionSchema)
def select_store(request: Request, body: SelectStoreRequest):
    """Select a store explicitly."""
    cache = get_selection(request)
    if not cache.set_selected_store(body.store_code):
        raise StoreNotFoundError(body.store_code)
    return selection_to_schema(cache)


@router.post("/selection/location", response_model=SelectionSchema)
async def update_location(request: Request, body: CoordinateSchema):
    """Record the user's position and select the nearest store."""
    cache = get_selection(request, _to_coordinate(body))
    await cache.request_location()
    return selection_to_schema(cache)


@router.post("/selection/check", response_model=StoreUpdateCheckSchema)
async def check_selection(request: Request, body: StalenessCheckRequest):
    """Decide whether the store selection should be refreshed."""
    location = _to_coordinate(body.location) if body.location else None
    check = await get_selection(request, location).check_store_update()
    return StoreUpdateCheckSchema(
        should_update=check.should_update,
        reason=check.reason,
        distance_km=check.distance_km,
    )


@router.delete("/selection", response_model=SelectionSchema)
def reset_selection(request: Request):
    """Reset the selection to the default store."""
    cache = get_selection(request)
    cache.reset()
    return selection_to_schema(cache)


# --- Cart Endpoints ---


@router.get("/cart", response_model=CartSchema)
def show_cart(request: Request):
    return cart_to_schema(get_cart(request).get_cart())


@router.post("/cart/items", response_model=CartSchema, status_code=201)
def add_cart_item(request: Request, body: CartAddRequest):
    """Add a product to the cart, merging with an existing line."""
    cart = get_cart(request)
    cart.add_item(Product(**body.product.model_dump()), body.quantity)
    return cart_to_schema(cart.get_cart())


@router.patch("/cart/items/{product_id}", response_model=CartSchema)
def update_cart_item(request: Request, product_id: str, body: CartUpdateRequest):
    """Set a line's quantity; 0 or less removes it."""
    cart = get_cart(request)
    if not cart.is_in_cart(product_id):
        raise CartItemNotFoundError(product_id)
    cart.update_quantity(product_id, body.quantity)
    return cart_to_schema(cart.get_cart())


@router.delete("/cart/items/{product_id}", response_model=CartSchema)
def remove_cart_item(request: Request, product_id: str):
    """Remove a line. Removing an absent product is not an error."""
    cart = get_cart(request)
    cart.remove_item(product_id)
    return cart_to_schema(cart.get_cart())


@router.delete("/cart", response_model=CartSchema)
def clear_cart(request: Request):
    cart = get_cart(request)
    cart.clear_cart()
    return cart_to_schema(cart.get_cart())


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    StoreNotFoundError: 404,
    CartItemNotFoundError: 404,
    InvalidQuantityError: 400,
    InvalidPhoneNumberError: 400,
    InvalidSchemaVersionError: 500,
}


async def monepiceriz_error_handler(request: Request, exc: MonepicerizError) -> JSONResponse:
    """Map MonepicerizError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- FastAPI App ---


def create_app(
    storage: KeyValueStorage | None = None,
    resolver: StoreResolver | None = None,
    location_provider: LocationProvider | None = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        storage: Where selection and cart state live (JSON files in the data
            directory by default).
        resolver: Store resolver (static store table by default).
        location_provider: Server-side location source used when a request
            carries no position. None means no location capability.
    """
    app = FastAPI(
        title="MonEpice&Riz API",
        description="Store selection, cart and phone validation",
        version=__version__,
    )
    app.state.storage = storage if storage is not None else JsonFileStorage()
    app.state.resolver = resolver or StoreResolver()
    app.state.location_provider = location_provider

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:3000",
            "http://127.0.0.1:5173",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(MonepicerizError, monepiceriz_error_handler)
    app.include_router(router)
    return app


app = create_app()
