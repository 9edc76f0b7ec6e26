"""Import and export of .geojson files for the feature store.

Exports are dated FeatureCollection documents.  Imports are all-or-nothing:
any parse or geometry error leaves the store untouched.
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Optional

from loguru import logger

from aoi_engine.features.errors import InvalidGeometry, InvalidGeoJSON
from aoi_engine.features.exporters.geojson import export_geojson
from aoi_engine.features.feature import Feature
from aoi_engine.features.parsers.geojson import loads_geojson, parse_geojson
from aoi_engine.features.store import FeatureStore

IMPORT_EXTENSIONS = (".geojson", ".json")


def export_filename(today: Optional[date] = None) -> str:
    """Download filename for an export made on *today*."""
    today = today or date.today()
    return f"aoi-features-{today.isoformat()}.geojson"


def export_text(store: FeatureStore) -> str:
    """Pretty-printed GeoJSON for the whole store."""
    return json.dumps(export_geojson(store.list()), indent=2)


def export_file(store: FeatureStore, directory: Path, today: Optional[date] = None) -> Path:
    """Write the store to a dated .geojson file in *directory*.

    Returns:
        Path of the written file.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(today)
    path.write_text(export_text(store), encoding="utf-8")
    logger.info(f"Exported {len(store)} features to {path}")
    return path


def import_document(store: FeatureStore, document) -> list[Feature]:
    """Import a decoded GeoJSON document (dict) or GeoJSON text.

    Raises:
        InvalidGeoJSON: If the document is malformed or any geometry is
            invalid.  Nothing is imported in that case.
    """
    if isinstance(document, (str, bytes)):
        if isinstance(document, bytes):
            try:
                document = document.decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidGeoJSON(f"GeoJSON must be UTF-8 text: {e}") from e
        requests = loads_geojson(document)
    else:
        requests = parse_geojson(document)

    try:
        return store.import_features(requests)
    except InvalidGeometry as e:
        raise InvalidGeoJSON(f"Invalid geometry in import: {e}") from e


def import_file(store: FeatureStore, path: Path) -> list[Feature]:
    """Import every geometry in a .geojson/.json file.

    Raises:
        InvalidGeoJSON: On an unsupported extension, unreadable file,
            or malformed content.  The store is left untouched.
    """
    path = Path(path)
    if path.suffix.lower() not in IMPORT_EXTENSIONS:
        raise InvalidGeoJSON(f"Unsupported file type: {path.name} (expected .geojson or .json)")
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidGeoJSON(f"Cannot read {path.name}: {e}") from e

    try:
        features = import_document(store, content)
    except InvalidGeoJSON as e:
        logger.warning(f"Rejected import of {path.name}: {e}")
        raise
    logger.info(f"Imported {len(features)} features from {path.name}")
    return features
