"""Error kinds raised by the AOI feature engine.

Store and codec errors propagate to the caller.  Persistence errors are
constructed for logging only and never leave the persistence adapter.
"""

from __future__ import annotations


class AOIError(Exception):
    """Base class for all AOI engine errors."""


class InvalidGeometry(AOIError, ValueError):
    """Ring cardinality or coordinate range violation."""


class NotFound(AOIError, KeyError):
    """Operation referenced a feature id that is not in the store."""

    def __init__(self, feature_id: str) -> None:
        super().__init__(feature_id)
        self.feature_id = feature_id

    def __str__(self) -> str:
        return f"Feature not found: {self.feature_id}"


class InvalidGeoJSON(AOIError, ValueError):
    """Malformed GeoJSON import payload."""


class InvalidTransition(AOIError):
    """Drawing-session event received in a state that cannot handle it."""


class PersistenceError(AOIError):
    """Base class for durable-slot failures (logged, never raised upward)."""


class PersistenceReadFailed(PersistenceError):
    """Stored payload missing or unparseable; degrades to an empty store."""


class PersistenceWriteFailed(PersistenceError):
    """Slot write failed; the in-memory store stays authoritative."""
