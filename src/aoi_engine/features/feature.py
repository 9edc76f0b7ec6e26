"""Feature dataclass and kind tag for the AOI feature store.

All coordinates are stored in map convention: (lat, lng) tuples.  The
GeoJSON codec swaps to [lng, lat] on the wire.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum


class FeatureKind(str, Enum):
    """Geometry kind, fixed when the feature is created."""
    POLYGON = "Polygon"
    POLYLINE = "Polyline"
    MARKER = "Marker"


# Minimum points per ring, by kind
MIN_POINTS = {
    FeatureKind.POLYGON: 3,
    FeatureKind.POLYLINE: 2,
    FeatureKind.MARKER: 1,
}


@dataclass
class Feature:
    """A single drawn or imported area of interest.

    Attributes:
        feature_id: Unique identifier, immutable after creation.
        kind: Polygon, Polyline or Marker.
        rings: List of rings of (lat, lng) points.
            Polygon: [outer, hole, hole, ...]
            Polyline: [path]
            Marker: [[point]]
        label: Display name ("Area N" unless renamed).
        visible: Whether the feature is shown and counted in totals.
        area_sq_km: Geodesic area for polygons, None for other kinds.
    """

    feature_id: str
    kind: FeatureKind
    rings: list[list[tuple[float, float]]]
    label: str
    visible: bool = True
    area_sq_km: float | None = None

    @property
    def point(self) -> tuple[float, float]:
        """First point of the first ring (the marker position)."""
        return self.rings[0][0]

    def snapshot(self) -> Feature:
        """Deep copy safe to hand to readers."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "id": self.feature_id,
            "kind": self.kind.value,
            "rings": [[list(p) for p in ring] for ring in self.rings],
            "label": self.label,
            "visible": self.visible,
            "area_sq_km": self.area_sq_km,
        }


@dataclass
class FeatureRequest:
    """Construction request for a feature, as produced by the GeoJSON parser.

    Carries everything needed for FeatureStore.create except the id.
    """

    kind: FeatureKind
    rings: list[list[tuple[float, float]]]
    label: str | None = None
    visible: bool | None = None
