"""Parse GeoJSON (RFC 7946) into feature construction requests.

Handles FeatureCollection, Feature and bare Geometry documents with
Point/LineString/Polygon geometries and their Multi* variants (one request
per part).  GeometryCollections are flattened.  Unlike a lenient map
import, a malformed feature rejects the whole document so callers can
import all-or-nothing.
"""

from __future__ import annotations

import json
import math

from aoi_engine.features.errors import InvalidGeoJSON
from aoi_engine.features.feature import FeatureKind, FeatureRequest

GEOMETRY_KINDS = {
    "Point": FeatureKind.MARKER,
    "LineString": FeatureKind.POLYLINE,
    "Polygon": FeatureKind.POLYGON,
}

MULTI_TYPES = {
    "MultiPoint": "Point",
    "MultiLineString": "LineString",
    "MultiPolygon": "Polygon",
}


def loads_geojson(geojson_string: str) -> list[FeatureRequest]:
    """Parse GeoJSON text into feature requests.

    Raises:
        InvalidGeoJSON: If the text is not JSON or not a usable document.
    """
    try:
        data = json.loads(geojson_string)
    except (json.JSONDecodeError, TypeError) as e:
        raise InvalidGeoJSON(f"Not valid JSON: {e}") from e
    return parse_geojson(data)


def parse_geojson(data: dict) -> list[FeatureRequest]:
    """Parse a decoded GeoJSON document into feature requests.

    Args:
        data: A FeatureCollection, Feature or Geometry object.

    Returns:
        One FeatureRequest per contained geometry (or geometry part), in
        document order.

    Raises:
        InvalidGeoJSON: On a missing or malformed geometry anywhere in the
            document.
    """
    if not isinstance(data, dict):
        raise InvalidGeoJSON("GeoJSON document must be an object")

    doc_type = data.get("type")
    if doc_type == "FeatureCollection":
        raw_features = data.get("features")
        if not isinstance(raw_features, list):
            raise InvalidGeoJSON("FeatureCollection 'features' must be an array")
        requests: list[FeatureRequest] = []
        for idx, raw in enumerate(raw_features):
            try:
                requests.extend(_parse_feature(raw))
            except InvalidGeoJSON as e:
                raise InvalidGeoJSON(f"Feature {idx}: {e}") from e
        return requests
    if doc_type == "Feature":
        return _parse_feature(data)
    return _parse_geometry(data, {})


def _parse_feature(raw) -> list[FeatureRequest]:
    """Parse a single GeoJSON Feature dict."""
    if not isinstance(raw, dict) or raw.get("type") != "Feature":
        raise InvalidGeoJSON("Expected a GeoJSON Feature object")

    properties = raw.get("properties") or {}
    if not isinstance(properties, dict):
        properties = {}

    geometry = raw.get("geometry")
    if geometry is None:
        raise InvalidGeoJSON("Feature has no geometry")
    return _parse_geometry(geometry, properties)


def _parse_geometry(geometry, properties: dict) -> list[FeatureRequest]:
    if not isinstance(geometry, dict):
        raise InvalidGeoJSON("Geometry must be an object")

    geom_type = geometry.get("type")
    if geom_type == "GeometryCollection":
        parts = geometry.get("geometries")
        if not isinstance(parts, list):
            raise InvalidGeoJSON("GeometryCollection 'geometries' must be an array")
        requests = []
        for part in parts:
            requests.extend(_parse_geometry(part, properties))
        return requests

    if "coordinates" not in geometry or geometry["coordinates"] is None:
        raise InvalidGeoJSON(f"{geom_type or 'Geometry'} has no coordinates")
    coordinates = geometry["coordinates"]

    if geom_type in MULTI_TYPES:
        if not isinstance(coordinates, list):
            raise InvalidGeoJSON(f"{geom_type} coordinates must be an array")
        single = MULTI_TYPES[geom_type]
        return [_request(single, part, properties) for part in coordinates]
    if geom_type in GEOMETRY_KINDS:
        return [_request(geom_type, coordinates, properties)]
    raise InvalidGeoJSON(f"Unsupported geometry type: {geom_type!r}")


def _request(geom_type: str, coordinates, properties: dict) -> FeatureRequest:
    kind = GEOMETRY_KINDS[geom_type]
    if kind is FeatureKind.MARKER:
        rings = [[_point(coordinates)]]
    elif kind is FeatureKind.POLYLINE:
        rings = [_ring(coordinates)]
    else:
        if not isinstance(coordinates, list) or not coordinates:
            raise InvalidGeoJSON("Polygon coordinates must be a non-empty array of rings")
        rings = [_strip_closing(_ring(r)) for r in coordinates]

    label = properties.get("label") or properties.get("name")
    visible = properties.get("visible")
    return FeatureRequest(
        kind=kind,
        rings=rings,
        label=str(label) if label else None,
        visible=visible if isinstance(visible, bool) else None,
    )


def _ring(coordinates) -> list[tuple[float, float]]:
    if not isinstance(coordinates, list):
        raise InvalidGeoJSON("Ring coordinates must be an array of positions")
    return [_point(p) for p in coordinates]


def _point(position) -> tuple[float, float]:
    """Convert a [lng, lat(, alt)] position to a (lat, lng) tuple."""
    if not isinstance(position, list) or len(position) not in (2, 3):
        raise InvalidGeoJSON(f"Position must be [lng, lat] or [lng, lat, alt]: {position!r}")
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in position):
        raise InvalidGeoJSON(f"Position values must be numbers: {position!r}")
    lng, lat = float(position[0]), float(position[1])
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidGeoJSON(f"Position values must be finite: {position!r}")
    return (lat, lng)


def _strip_closing(ring: list[tuple[float, float]]) -> list[tuple[float, float]]:
    ring = list(ring)
    while len(ring) > 1 and ring[-1] == ring[0]:
        ring.pop()
    return ring
