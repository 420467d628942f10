"""
Store selection with geolocation and staleness detection.

``StoreSelectionCache`` holds the selected store, the last known user
position and when it was captured. It persists those fields to durable
storage, resolves the nearest store from fresh positions, and decides when a
cached selection is stale enough to resolve again.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable

from .errors import InvalidSchemaVersionError, LocationError
from .events import StoreChangeCallback, StoreChangeEmitter
from .geo import calculate_distance
from .location import (
    LocationErrorCode,
    LocationProvider,
    PositionOptions,
    location_error_message,
)
from .models import Coordinate, StoreSelectionState, _format_timestamp, _parse_timestamp
from .storage import KeyValueStorage, MemoryStorage, load_envelope, save_envelope
from .stores import DEFAULT_STORE, STORE_ERRORS, STORE_MESSAGES, StoreResolver

logger = logging.getLogger(__name__)

STORAGE_KEY = "store-selection-storage"
SCHEMA_VERSION = 1


class SelectionStatus(str, Enum):
    NO_LOCATION = "no-location"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    ERROR = "error"


@dataclass(frozen=True)
class StalenessPolicy:
    """
    Thresholds deciding when a cached selection should be resolved again.

    Movement and distance are two tiers checked with different fixes: a quick
    low-accuracy fix against ``movement_threshold_km`` and a coarser one
    (older fixes accepted) against ``distance_threshold_km``. Setting both
    thresholds equal collapses them to one.
    """

    cache_duration: timedelta = timedelta(hours=1)
    movement_threshold_km: float = 2.0
    distance_threshold_km: float = 5.0
    request_options: PositionOptions = field(
        default_factory=lambda: PositionOptions(high_accuracy=True, timeout_ms=10_000, max_age_ms=300_000)
    )
    movement_options: PositionOptions = field(
        default_factory=lambda: PositionOptions(high_accuracy=False, timeout_ms=10_000, max_age_ms=60_000)
    )
    distance_options: PositionOptions = field(
        default_factory=lambda: PositionOptions(high_accuracy=False, timeout_ms=15_000, max_age_ms=300_000)
    )


@dataclass(frozen=True)
class StoreUpdateCheck:
    """Whether the selection should be refreshed, and why."""

    should_update: bool
    reason: str | None = None  # "no_store" | "time" | "movement" | "distance"
    distance_km: float | None = None


def migrate_selection_state(
    data: dict[str, Any], version: int, default_store: str, resolver: StoreResolver
) -> StoreSelectionState:
    """
    Bring a persisted state payload up to the current schema.

    Store codes that are no longer valid are replaced by ``default_store``
    (selected store) or dropped (nearest store).

    Raises:
        InvalidSchemaVersionError: If the payload comes from a newer schema.
    """
    if version > SCHEMA_VERSION:
        raise InvalidSchemaVersionError(version, SCHEMA_VERSION)

    if version == 0:
        # Version 0 payloads could omit fields entirely
        data = {**StoreSelectionState(selected_store=default_store).to_dict(), **data}

    state = StoreSelectionState.from_dict(data)
    if not resolver.is_valid_store_code(state.selected_store):
        logger.warning(
            "Persisted store code %r is invalid, using %s", state.selected_store, default_store
        )
        state.selected_store = default_store
    if state.nearest_store is not None and not resolver.is_valid_store_code(state.nearest_store):
        state.nearest_store = None
    return state


class StoreSelectionCache:
    """
    Selected store plus cached user location, persisted across sessions.

    Only the fields of ``StoreSelectionState`` are persisted. The loading flag,
    the last error and the change subscribers are reset on every load.
    """

    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        resolver: StoreResolver | None = None,
        location_provider: LocationProvider | None = None,
        policy: StalenessPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
        default_store: str = DEFAULT_STORE,
        storage_key: str = STORAGE_KEY,
    ):
        """
        Initialize StoreSelectionCache and load any persisted state.

        Args:
            storage: Durable storage (in-memory if omitted).
            resolver: Store resolver (static store table if omitted).
            location_provider: Platform location service, or None when the
                platform has no location capability.
            policy: Staleness thresholds.
            clock: Returns the current aware datetime (for testing).
            default_store: Store code used before any resolution.
            storage_key: Key the state is persisted under.
        """
        self.storage = storage if storage is not None else MemoryStorage()
        self.resolver = resolver or StoreResolver()
        self.location_provider = location_provider
        self.policy = policy or StalenessPolicy()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.storage_key = storage_key

        if not self.resolver.is_valid_store_code(default_store):
            raise ValueError(f"Default store {default_store!r} is not in the store table")
        self.default_store = default_store

        self.emitter = StoreChangeEmitter()
        self.is_loading_location = False
        self.location_error: str | None = None
        self.location_error_code: int | None = None
        self._inflight: asyncio.Future | None = None

        self.state = self._load()
        self.status = (
            SelectionStatus.RESOLVED if self.state.nearest_store else SelectionStatus.NO_LOCATION
        )

    # --- Persistence ---

    def _initial_state(self) -> StoreSelectionState:
        return StoreSelectionState(selected_store=self.default_store)

    def _load(self) -> StoreSelectionState:
        envelope = load_envelope(self.storage, self.storage_key)
        if envelope is None:
            return self._initial_state()

        data, version = envelope
        try:
            return migrate_selection_state(data, version, self.default_store, self.resolver)
        except InvalidSchemaVersionError as e:
            logger.warning("Discarding persisted store selection: %s", e)
            return self._initial_state()
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding malformed persisted store selection: %s", e)
            return self._initial_state()

    def _persist(self) -> None:
        save_envelope(self.storage, self.storage_key, self.state.to_dict(), SCHEMA_VERSION)

    # --- Accessors ---

    @property
    def selected_store(self) -> str:
        return self.state.selected_store

    @property
    def user_location(self) -> Coordinate | None:
        return self.state.user_location

    @property
    def nearest_store(self) -> str | None:
        return self.state.nearest_store

    @property
    def last_location_update(self) -> str | None:
        return self.state.last_location_update

    # --- Mutations ---

    def set_selected_store(self, code: str) -> bool:
        """
        Select a store and notify subscribers.

        Returns:
            False (and changes nothing) if the code is not a valid store code.
        """
        if not self.resolver.is_valid_store_code(code):
            logger.warning("Invalid store code: %r", code)
            return False

        self.state.selected_store = code
        self._persist()
        logger.info("Selected store %s", code)
        self.emitter.emit(code)
        return True

    def set_user_location(self, location: Coordinate) -> None:
        self.state.user_location = location
        self.state.last_location_update = _format_timestamp(self._clock())
        self.location_error = None
        self.location_error_code = None
        self._persist()

    def clear_location_error(self) -> None:
        self.location_error = None
        self.location_error_code = None

    def reset(self) -> None:
        """Return to the initial state. Subscribers are kept."""
        self.state = self._initial_state()
        self.is_loading_location = False
        self.clear_location_error()
        self.status = SelectionStatus.NO_LOCATION
        self._persist()

    def on_store_change(self, callback: StoreChangeCallback) -> Callable[[], None]:
        """Subscribe to store changes. Returns an unsubscribe function."""
        return self.emitter.subscribe(callback)

    # --- Geolocation ---

    async def request_location(self) -> Coordinate | None:
        """
        Ask the location provider for a position and select the nearest store.

        Concurrent calls share one provider request. On failure the error
        message is recorded, the previously selected store is kept and None
        is returned. A provider timeout counts as a TIMEOUT failure. Any other
        unexpected provider error is recorded as an unavailable position and
        re-raised.
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._request_location())
        return await asyncio.shield(self._inflight)

    async def _request_location(self) -> Coordinate | None:
        if self.location_provider is None:
            self._fail(None, STORE_ERRORS["GEOLOCATION_NOT_SUPPORTED"])
            return None

        self.is_loading_location = True
        self.clear_location_error()
        self.status = SelectionStatus.RESOLVING

        try:
            coordinate = await self.location_provider.get_current_position(
                self.policy.request_options
            )
        except LocationError as e:
            self._fail(e.code, location_error_message(e.code))
            return None
        except asyncio.TimeoutError:
            self._fail(LocationErrorCode.TIMEOUT, location_error_message(LocationErrorCode.TIMEOUT))
            return None
        except Exception:
            self._fail(None, STORE_ERRORS["GEOLOCATION_POSITION_UNAVAILABLE"])
            raise

        self.set_user_location(coordinate)
        self.is_loading_location = False
        self._resolve(coordinate)
        return coordinate

    def _fail(self, code: int | None, message: str) -> None:
        logger.warning("Location request failed: %s", message)
        self.location_error = message
        self.location_error_code = code
        self.is_loading_location = False
        self.status = SelectionStatus.ERROR

    def _resolve(self, location: Coordinate) -> None:
        nearest = self.resolver.nearest_store(location)
        self.state.nearest_store = nearest.store.code
        self.status = SelectionStatus.RESOLVED
        self.set_selected_store(nearest.store.code)
        logger.info(
            "%s (%s, %.2f km)",
            STORE_MESSAGES["NEAREST_STORE_SELECTED"],
            nearest.store.code,
            nearest.distance,
        )

    async def detect_nearest_store(self, refresh: bool = False) -> str | None:
        """
        Select the store nearest to the user.

        Uses the cached location unless there is none or ``refresh`` is set,
        in which case a new position is requested.

        Returns:
            The nearest store code, or None if no location could be obtained.
        """
        if refresh or self.state.user_location is None:
            if await self.request_location() is None:
                return None
        else:
            self._resolve(self.state.user_location)
        return self.state.nearest_store

    # --- Staleness ---

    def is_location_stale(self) -> bool:
        """True when the cached location is missing or older than the cache duration."""
        if not self.state.last_location_update:
            return True
        try:
            last_update = _parse_timestamp(self.state.last_location_update)
        except ValueError:
            return True
        return self._clock() - last_update > self.policy.cache_duration

    async def _distance_from_cached(self, options: PositionOptions) -> float | None:
        cached = self.state.user_location
        if cached is None or self.location_provider is None:
            return None
        try:
            current = await self.location_provider.get_current_position(options)
        except (LocationError, asyncio.TimeoutError) as e:
            logger.warning("Unable to check location change: %s", e)
            return None
        return calculate_distance(cached, current)

    async def distance_from_cached_location(self) -> float | None:
        """Km between a fresh fix and the cached location, or None if unavailable."""
        return await self._distance_from_cached(self.policy.distance_options)

    async def has_user_moved_significantly(self) -> bool:
        """Movement tier. A failed fix is not treated as movement."""
        if self.location_provider is None:
            return False
        if self.state.user_location is None:
            return True
        distance = await self._distance_from_cached(self.policy.movement_options)
        return distance is not None and distance > self.policy.movement_threshold_km

    async def is_location_distance_stale(self) -> bool:
        """Distance tier. A failed fix is not treated as staleness."""
        if self.location_provider is None:
            return False
        if self.state.user_location is None:
            return True
        distance = await self.distance_from_cached_location()
        return distance is not None and distance > self.policy.distance_threshold_km

    async def check_store_update(self) -> StoreUpdateCheck:
        """
        Decide whether the selection should be resolved again.

        Checks run in order: no store selected, no location capability (never
        update), elapsed time, movement tier, distance tier.
        """
        if not self.resolver.is_valid_store_code(self.state.selected_store):
            return StoreUpdateCheck(should_update=True, reason="no_store")

        if self.location_provider is None:
            return StoreUpdateCheck(should_update=False)

        if self.is_location_stale():
            return StoreUpdateCheck(should_update=True, reason="time")

        if self.state.user_location is None:
            return StoreUpdateCheck(should_update=True, reason="movement")

        moved = await self._distance_from_cached(self.policy.movement_options)
        if moved is not None and moved > self.policy.movement_threshold_km:
            return StoreUpdateCheck(should_update=True, reason="movement", distance_km=moved)

        distance = await self.distance_from_cached_location()
        if distance is not None and distance > self.policy.distance_threshold_km:
            return StoreUpdateCheck(should_update=True, reason="distance", distance_km=distance)

        return StoreUpdateCheck(should_update=False)

    async def should_prompt_store_update(self) -> bool:
        return (await self.check_store_update()).should_update

    async def initialize(self) -> StoreUpdateCheck:
        """
        Start-up check: resolve the nearest store again if the selection is stale.

        When resolution fails the current store is kept (or the default one if
        the current code is invalid).
        """
        try:
            check = await self.check_store_update()
            if not check.should_update:
                logger.debug("Store selection is still valid")
                return check

            logger.info("Store selection needs update (%s)", check.reason)
            previous = self.state.selected_store
            nearest = await self.detect_nearest_store(refresh=True)
            if nearest is not None and nearest != previous:
                logger.info("Store changed from %s to %s", previous, nearest)
            return check
        except Exception as e:
            logger.warning("Automatic store detection failed, keeping current store: %s", e)
            if not self.resolver.is_valid_store_code(self.state.selected_store):
                self.set_selected_store(self.default_store)
            return StoreUpdateCheck(should_update=False)

    def distance_to_selected_store(self) -> float | None:
        """Km from the cached location to the selected store, or None without a location."""
        location = self.state.user_location
        store = self.resolver.get_store(self.state.selected_store)
        if location is None or store is None:
            return None
        return calculate_distance(location, store.location)
