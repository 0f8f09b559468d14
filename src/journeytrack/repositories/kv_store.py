"""Key-value stores backing visitor and session identity.

Two tiers are used: a tab-scoped store that lives as long as the widget's
host tab, and a device-scoped store that survives restarts. ``FallbackStore``
is the resolution policy: if the device tier cannot be accessed, it switches
once to a volatile in-memory store so identity resolution degrades instead of
failing.
"""

import json
import os
import threading
from pathlib import Path
from typing import Protocol

import structlog

from journeytrack.utils.exceptions import StorageAccessError

logger = structlog.get_logger()


class KeyValueStore(Protocol):
    """String key-value storage capability."""

    name: str

    def get(self, key: str) -> str | None:
        """Get a value, None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Set a value."""
        ...

    def remove(self, key: str) -> None:
        """Remove a value if present."""
        ...


class MemoryStore:
    """In-memory store, used for the tab tier and as the volatile fallback."""

    def __init__(self, name: str = "memory", initial: dict[str, str] | None = None):
        self.name = name
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        """Drop every key (the tab closed)."""
        self._data.clear()

    def snapshot(self) -> dict[str, str]:
        """Copy of the current contents."""
        return dict(self._data)


class JsonFileStore:
    """Device-scoped store persisted as a JSON object on disk.

    Every write is flushed to the file. Any I/O or decode failure raises
    ``StorageAccessError``.
    """

    def __init__(self, path: str | Path, name: str = "device"):
        self.name = name
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data

        try:
            if self.path.exists():
                raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
                if not isinstance(raw, dict):
                    raise ValueError("store file does not contain an object")
                self._data = {str(k): str(v) for k, v in raw.items()}
            else:
                self._data = {}
        except (OSError, ValueError) as e:
            raise StorageAccessError(self.name, original_error=str(e)) from e

        return self._data

    def _flush(self, key: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(self._data), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageAccessError(self.name, key=key, original_error=str(e)) from e

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._load()[key] = value
            self._flush(key)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._flush(key)


class FallbackStore:
    """Store wrapper that degrades to volatile memory on the first failure."""

    def __init__(self, primary: KeyValueStore, fallback: KeyValueStore | None = None):
        self.primary = primary
        self.fallback = fallback or MemoryStore(name=f"{primary.name}-volatile")
        self.name = primary.name
        self.degraded = False
        self.logger = logger.bind(store=primary.name)

    @property
    def active(self) -> KeyValueStore:
        return self.fallback if self.degraded else self.primary

    def _degrade(self, error: StorageAccessError) -> None:
        self.degraded = True
        self.logger.warning(
            "Storage not accessible, falling back to volatile memory",
            error=error.message,
            details=error.details,
        )

    def get(self, key: str) -> str | None:
        if not self.degraded:
            try:
                return self.primary.get(key)
            except StorageAccessError as e:
                self._degrade(e)
        return self.fallback.get(key)

    def set(self, key: str, value: str) -> None:
        if not self.degraded:
            try:
                self.primary.set(key, value)
                return
            except StorageAccessError as e:
                self._degrade(e)
        self.fallback.set(key, value)

    def remove(self, key: str) -> None:
        if not self.degraded:
            try:
                self.primary.remove(key)
                return
            except StorageAccessError as e:
                self._degrade(e)
        self.fallback.remove(key)


def build_device_store(path: str | None) -> FallbackStore:
    """Create the device-scoped store for a configured path.

    Args:
        path: JSON file path, or None for an in-memory device store.

    Returns:
        Store wrapped in the fallback policy.
    """
    primary: KeyValueStore = JsonFileStore(path) if path else MemoryStore(name="device")
    return FallbackStore(primary)
