"""AOI feature system: model, store, geometry, GeoJSON codec and persistence.

GeoJSON parsing and export use only stdlib json.
"""

from aoi_engine.features.errors import (
    AOIError,
    InvalidGeometry,
    InvalidGeoJSON,
    InvalidTransition,
    NotFound,
    PersistenceReadFailed,
    PersistenceWriteFailed,
)
from aoi_engine.features.feature import Feature, FeatureKind, FeatureRequest
from aoi_engine.features.persistence import FileSlotStore, MemorySlotStore, PersistenceAdapter
from aoi_engine.features.store import FeatureStore

__all__ = [
    "AOIError",
    "Feature",
    "FeatureKind",
    "FeatureRequest",
    "FeatureStore",
    "FileSlotStore",
    "InvalidGeoJSON",
    "InvalidGeometry",
    "InvalidTransition",
    "MemorySlotStore",
    "NotFound",
    "PersistenceAdapter",
    "PersistenceReadFailed",
    "PersistenceWriteFailed",
]
