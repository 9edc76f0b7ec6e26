"""Durable storage for the feature store.

The whole collection lives under one key as GeoJSON FeatureCollection text.
Read and write failures are logged and absorbed: a corrupt slot loads as an
empty collection, and a failed write leaves the in-memory store
authoritative.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Protocol

from loguru import logger

from aoi_engine.features.errors import (
    InvalidGeoJSON,
    PersistenceReadFailed,
    PersistenceWriteFailed,
)
from aoi_engine.features.exporters.geojson import dumps_geojson
from aoi_engine.features.feature import Feature, FeatureRequest
from aoi_engine.features.parsers.geojson import loads_geojson

DEFAULT_KEY = "aoi-features"

_KEY_RE = re.compile(r"^[A-Za-z0-9._-]+$")


class SlotStore(Protocol):
    """Minimal key-value slot interface."""

    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemorySlotStore:
    """In-process slot store, used for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self.slots: dict[str, str] = dict(initial or {})
        self.writes = 0

    def read(self, key: str) -> Optional[str]:
        return self.slots.get(key)

    def write(self, key: str, value: str) -> None:
        self.writes += 1
        self.slots[key] = value

    def delete(self, key: str) -> None:
        self.slots.pop(key, None)


class FileSlotStore:
    """One UTF-8 file per key inside a directory."""

    def __init__(self, storage_path: Path):
        """Initialize file slot store.

        Args:
            storage_path: Directory to store slot files
        """
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid slot key: {key!r}")
        return self.storage_path / f"{key}.geojson"

    def read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, value: str) -> None:
        path = self.path_for(key)
        # Write to a sibling temp file and rename so a crash never truncates the slot
        fd, tmp = tempfile.mkstemp(dir=self.storage_path, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        if path.exists():
            path.unlink()


class PersistenceAdapter:
    """Loads and saves the feature collection under a single slot key."""

    def __init__(self, slots: SlotStore, key: str = DEFAULT_KEY) -> None:
        self.slots = slots
        self.key = key
        self._last_saved: Optional[str] = None
        self.last_error: Optional[Exception] = None

    def load(self) -> list[FeatureRequest]:
        """Read the stored collection.

        Returns:
            Feature construction requests in stored order; empty when the
            slot is missing or its payload cannot be parsed.
        """
        try:
            payload = self.slots.read(self.key)
        except (OSError, UnicodeDecodeError) as e:
            self._record(PersistenceReadFailed(f"Failed to read slot '{self.key}': {e}"))
            return []
        if payload is None:
            return []

        try:
            requests = loads_geojson(payload)
        except InvalidGeoJSON as e:
            self._record(PersistenceReadFailed(f"Stored features in '{self.key}' are corrupt: {e}"))
            return []

        self._last_saved = payload
        return requests

    def save(self, features: Iterable[Feature]) -> bool:
        """Serialize and write the collection.

        Identical content is not rewritten.

        Returns:
            True if the slot holds the collection afterwards.
        """
        payload = dumps_geojson(features)
        if payload == self._last_saved:
            return True
        try:
            self.slots.write(self.key, payload)
        except (OSError, ValueError) as e:
            self._record(PersistenceWriteFailed(f"Failed to save features to '{self.key}': {e}"))
            return False
        self._last_saved = payload
        self.last_error = None
        return True

    def _record(self, error: Exception) -> None:
        self.last_error = error
        logger.error(str(error))
