"""Durable key-value storage for client state."""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# Can be overridden via MONEPICERIZ_DATA_DIR environment variable
_default_data_dir = Path.home() / ".monepiceriz"
DATA_DIR = Path(os.environ.get("MONEPICERIZ_DATA_DIR", _default_data_dir))

_VALID_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStorage(Protocol):
    """String-to-string storage, shaped like the browser's localStorage."""

    def get_item(self, key: str) -> str | None:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class MemoryStorage:
    """Storage that lives as long as the object. Used for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage:
    """Stores each key as ``<key>.json`` in a directory. Last writer wins."""

    def __init__(self, data_dir: Path | None = None):
        """
        Initialize JsonFileStorage.

        Args:
            data_dir: Override storage directory (for testing).
        """
        self.data_dir = Path(data_dir) if data_dir is not None else DATA_DIR

    def _path(self, key: str) -> Path:
        if not _VALID_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.data_dir / f"{key}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        """Write a value atomically (write to temp file, then rename)."""
        path = self._path(key)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.write("\n")
            os.replace(temp_path, path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass


def save_envelope(storage: KeyValueStorage, key: str, state: dict[str, Any], version: int) -> None:
    """Persist ``state`` wrapped in a versioned envelope."""
    storage.set_item(key, json.dumps({"state": state, "version": version}, indent=2))


def load_envelope(storage: KeyValueStorage, key: str) -> tuple[dict[str, Any], int] | None:
    """
    Read a versioned envelope.

    Returns:
        ``(state, version)``, or None when nothing usable is stored. Unreadable
        payloads are logged and treated as absent.
    """
    raw = storage.get_item(key)
    if raw is None:
        return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding unreadable state stored under %r", key)
        return None

    if not isinstance(data, dict) or not isinstance(data.get("state"), dict):
        logger.warning("Discarding malformed state envelope stored under %r", key)
        return None

    version = data.get("version", 0)
    if not isinstance(version, int):
        version = 0
    return data["state"], version
