"""Export features to a GeoJSON FeatureCollection dict (RFC 7946).

Internal points are (lat, lng); GeoJSON positions are [lng, lat].  Polygon
rings are stored open and closed here, as RFC 7946 requires.
"""

from __future__ import annotations

import json
from typing import Iterable

from aoi_engine.features.feature import Feature, FeatureKind

GEOMETRY_TYPES = {
    FeatureKind.POLYGON: "Polygon",
    FeatureKind.POLYLINE: "LineString",
    FeatureKind.MARKER: "Point",
}


def export_geojson(features: Iterable[Feature]) -> dict:
    """Export features to a GeoJSON FeatureCollection dict.

    Args:
        features: Features in display order.

    Returns:
        Dict representing a valid GeoJSON FeatureCollection.
    """
    return {
        "type": "FeatureCollection",
        "features": [_feature_to_geojson(f) for f in features],
    }


def dumps_geojson(features: Iterable[Feature], indent: int | None = None) -> str:
    """Export features to GeoJSON text."""
    return json.dumps(export_geojson(features), indent=indent)


def _position(point) -> list[float]:
    return [point[1], point[0]]


def _geometry(feature: Feature) -> dict:
    if feature.kind is FeatureKind.MARKER:
        coordinates = _position(feature.point)
    elif feature.kind is FeatureKind.POLYLINE:
        coordinates = [_position(p) for p in feature.rings[0]]
    else:
        coordinates = []
        for ring in feature.rings:
            positions = [_position(p) for p in ring]
            if positions and positions[0] != positions[-1]:
                positions.append(list(positions[0]))
            coordinates.append(positions)
    return {"type": GEOMETRY_TYPES[feature.kind], "coordinates": coordinates}


def _feature_to_geojson(feature: Feature) -> dict:
    """Convert a Feature to a GeoJSON Feature dict."""
    properties = {"label": feature.label, "visible": feature.visible}
    if feature.kind is FeatureKind.POLYGON:
        properties["areaSqKm"] = feature.area_sq_km
    return {
        "type": "Feature",
        "id": feature.feature_id,
        "geometry": _geometry(feature),
        "properties": properties,
    }
