"""FeatureStore: the single source of truth for drawn areas of interest.

Owns the insertion-ordered feature collection, enforces ring invariants,
keeps derived polygon areas current, and flushes to the persistence
adapter after every mutation.  Renderers subscribe for snapshots; they
never hold feature state themselves.
"""

from __future__ import annotations

import math
import uuid
from typing import Callable, Iterable, Optional, Sequence

from loguru import logger

from aoi_engine.features import geometry
from aoi_engine.features.errors import InvalidGeometry, NotFound
from aoi_engine.features.feature import MIN_POINTS, Feature, FeatureKind, FeatureRequest

Listener = Callable[[list[Feature]], None]


def normalize_rings(kind: FeatureKind, rings: Sequence[Sequence[Sequence[float]]]) -> list[list[tuple[float, float]]]:
    """Validate *rings* for *kind* and return them as lists of (lat, lng) tuples.

    Polygon rings are stored open: trailing copies of the first point are
    dropped before the cardinality check.

    Raises:
        InvalidGeometry: On wrong ring count, too few points, or a point
            that is not a finite in-range (lat, lng) pair.
    """
    kind = FeatureKind(kind)
    if not rings:
        raise InvalidGeometry(f"{kind.value} needs at least one ring")
    if kind is not FeatureKind.POLYGON and len(rings) != 1:
        raise InvalidGeometry(f"{kind.value} takes exactly one ring, got {len(rings)}")

    result: list[list[tuple[float, float]]] = []
    for idx, raw_ring in enumerate(rings):
        ring = [to_point(p) for p in raw_ring]
        if kind is FeatureKind.POLYGON:
            while len(ring) > 1 and ring[-1] == ring[0]:
                ring.pop()

        minimum = MIN_POINTS[kind]
        if len(ring) < minimum:
            raise InvalidGeometry(
                f"{kind.value} ring {idx} has {len(ring)} point(s), needs at least {minimum}"
            )
        if kind is FeatureKind.MARKER and len(ring) != 1:
            raise InvalidGeometry(f"Marker takes a single point, got {len(ring)}")
        result.append(ring)
    return result


def to_point(raw: Sequence[float]) -> tuple[float, float]:
    """Validate one (lat, lng) pair.

    Raises:
        InvalidGeometry: If it is malformed, non-finite or out of range.
    """
    try:
        lat, lng = float(raw[0]), float(raw[1])
    except (TypeError, ValueError, IndexError):
        raise InvalidGeometry(f"Not a (lat, lng) point: {raw!r}") from None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidGeometry(f"Non-finite coordinate: {raw!r}")
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        raise InvalidGeometry(f"Coordinate out of range: lat={lat}, lng={lng}")
    return (lat, lng)


class FeatureStore:
    """Insertion-ordered registry of AOI features."""

    def __init__(
        self,
        persistence=None,
        default_visible: bool = True,
        label_prefix: str = "Area",
    ) -> None:
        """Initialize an empty store.

        Args:
            persistence: Object with a ``save(features)`` method, called
                after every mutation.  None disables persistence.
            default_visible: Visibility given to newly created features.
            label_prefix: Prefix of the generated "Area N" labels.
        """
        self._features: dict[str, Feature] = {}
        self._persistence = persistence
        self._listeners: list[Listener] = []
        self._sequence = 0
        self.default_visible = default_visible
        self.label_prefix = label_prefix

    @classmethod
    def from_persistence(cls, persistence, **kwargs) -> FeatureStore:
        """Create a store seeded from ``persistence.load()``.

        Stored features that fail validation are treated like an
        unparseable payload: the store starts empty.
        """
        store = cls(persistence=None, **kwargs)
        requests = persistence.load()
        try:
            store._create_batch(requests)
        except InvalidGeometry as e:
            logger.error(f"Discarding stored features with invalid geometry: {e}")
            store._features.clear()
        store._sequence = len(store._features)
        store._persistence = persistence
        logger.info(f"Loaded {len(store._features)} features")
        return store

    # ==================
    # Subscriptions
    # ==================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with a snapshot after each mutation.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _changed(self) -> None:
        if self._persistence is not None:
            self._persistence.save(self.list())
        if self._listeners:
            snapshot = self.list()
            for listener in list(self._listeners):
                listener(snapshot)

    # ==================
    # CRUD
    # ==================

    def create(
        self,
        kind: FeatureKind,
        rings: Sequence[Sequence[Sequence[float]]],
        label: Optional[str] = None,
        visible: Optional[bool] = None,
    ) -> Feature:
        """Create a feature and append it to the collection.

        Args:
            kind: Geometry kind.
            rings: Rings of (lat, lng) points.
            label: Display name; defaults to "<prefix> N".
            visible: Initial visibility; defaults to the store default.

        Returns:
            A snapshot of the created Feature.

        Raises:
            InvalidGeometry: If the rings violate the cardinality rules.
        """
        feature = self._build(kind, rings, label, visible)
        self._features[feature.feature_id] = feature
        self._changed()
        logger.info(f"Created {feature.kind.value} '{feature.label}' ({feature.feature_id})")
        return feature.snapshot()

    def import_features(self, requests: Iterable[FeatureRequest]) -> list[Feature]:
        """Create one feature per request, all or nothing.

        Every request is validated before any feature is added, and the
        store is flushed once for the whole batch.

        Raises:
            InvalidGeometry: If any request is invalid; the store is unchanged.
        """
        created = self._create_batch(list(requests))
        if created:
            self._changed()
            logger.info(f"Imported {len(created)} features")
        return [f.snapshot() for f in created]

    def _create_batch(self, requests: list[FeatureRequest]) -> list[Feature]:
        # Validate everything up front so a bad request never leaves a partial batch
        validated = [normalize_rings(r.kind, r.rings) for r in requests]
        created = [
            self._build(request.kind, rings, request.label, request.visible)
            for request, rings in zip(requests, validated)
        ]
        for feature in created:
            self._features[feature.feature_id] = feature
        return created

    def _build(self, kind, rings, label, visible) -> Feature:
        kind = FeatureKind(kind)
        rings = normalize_rings(kind, rings)
        self._sequence += 1
        feature_id = f"aoi-{uuid.uuid4().hex[:8]}"
        while feature_id in self._features:
            feature_id = f"aoi-{uuid.uuid4().hex[:8]}"
        return Feature(
            feature_id=feature_id,
            kind=kind,
            rings=rings,
            label=label or f"{self.label_prefix} {self._sequence}",
            visible=self.default_visible if visible is None else bool(visible),
            area_sq_km=geometry.polygon_area(rings) if kind is FeatureKind.POLYGON else None,
        )

    def _require(self, feature_id: str) -> Feature:
        feature = self._features.get(feature_id)
        if feature is None:
            raise NotFound(feature_id)
        return feature

    def get(self, feature_id: str) -> Feature:
        """Get a snapshot of a feature by ID.

        Raises:
            NotFound: If the feature does not exist.
        """
        return self._require(feature_id).snapshot()

    def update(self, feature_id: str, rings: Sequence[Sequence[Sequence[float]]]) -> Feature:
        """Replace a feature's geometry and recompute its area.

        Raises:
            NotFound: If the feature does not exist.
            InvalidGeometry: If the new rings are invalid; geometry is unchanged.
        """
        feature = self._require(feature_id)
        new_rings = normalize_rings(feature.kind, rings)
        feature.rings = new_rings
        if feature.kind is FeatureKind.POLYGON:
            feature.area_sq_km = geometry.polygon_area(new_rings)
        self._changed()
        logger.info(f"Updated geometry of {feature_id}")
        return feature.snapshot()

    def remove(self, feature_id: str) -> bool:
        """Delete a feature.

        Returns:
            True if deleted, False if it did not exist.
        """
        if feature_id not in self._features:
            return False
        del self._features[feature_id]
        self._changed()
        logger.info(f"Deleted feature {feature_id}")
        return True

    def set_visible(self, feature_id: str, visible: bool) -> Feature:
        """Show or hide a feature without touching its geometry.

        Raises:
            NotFound: If the feature does not exist.
        """
        feature = self._require(feature_id)
        feature.visible = bool(visible)
        self._changed()
        return feature.snapshot()

    def rename(self, feature_id: str, label: str) -> Feature:
        """Change a feature's display name.

        Raises:
            NotFound: If the feature does not exist.
            ValueError: If the label is blank.
        """
        feature = self._require(feature_id)
        label = (label or "").strip()
        if not label:
            raise ValueError("Label must not be blank")
        feature.label = label
        self._changed()
        logger.info(f"Renamed {feature_id} to '{label}'")
        return feature.snapshot()

    def clear(self) -> None:
        """Remove every feature."""
        count = len(self._features)
        self._features.clear()
        self._changed()
        logger.info(f"Cleared {count} features")

    # ==================
    # Queries
    # ==================

    def list(self) -> list[Feature]:
        """Snapshots of all features in insertion order."""
        return [f.snapshot() for f in self._features.values()]

    def __len__(self) -> int:
        return len(self._features)

    def __contains__(self, feature_id: object) -> bool:
        return feature_id in self._features

    def total_area_sq_km(self) -> float:
        """Sum of areas over visible polygons."""
        return sum(
            f.area_sq_km or 0.0
            for f in self._features.values()
            if f.visible and f.kind is FeatureKind.POLYGON
        )

    def stats(self) -> dict:
        """Summary counts for the sidebar statistics panel."""
        by_kind = {kind.value: 0 for kind in FeatureKind}
        for f in self._features.values():
            by_kind[f.kind.value] += 1
        total = self.total_area_sq_km()
        return {
            "feature_count": len(self._features),
            "visible_count": sum(1 for f in self._features.values() if f.visible),
            "by_kind": by_kind,
            "total_area_sq_km": total,
            "total_area_display": geometry.format_area(total),
        }
