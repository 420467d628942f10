"""Store change notifications."""

import logging
from typing import Callable

logger = logging.getLogger(__name__)

StoreChangeCallback = Callable[[str], None]


class StoreChangeEmitter:
    """
    Keeps "store changed" subscribers apart from the selection state.

    Subscribers run synchronously in registration order. A subscriber that
    raises is logged and the remaining subscribers still run.
    """

    def __init__(self) -> None:
        self._callbacks: list[StoreChangeCallback] = []

    def subscribe(self, callback: StoreChangeCallback) -> Callable[[], None]:
        """Register a callback. Returns a function that unregisters it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def emit(self, store_code: str) -> None:
        for callback in list(self._callbacks):
            try:
                callback(store_code)
            except Exception:
                logger.exception("Error in store change callback %r", callback)

    def __len__(self) -> int:
        return len(self._callbacks)
