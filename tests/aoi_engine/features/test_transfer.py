"""Tests for .geojson file export/import."""

from __future__ import annotations

import json
from datetime import date

import pytest

from aoi_engine.features import FeatureKind, FeatureStore, InvalidGeoJSON
from aoi_engine.features.transfer import (
    export_file,
    export_filename,
    import_document,
    import_file,
)

pytestmark = pytest.mark.unit

SQUARE = [(0.0, 0.0), (0.0, 0.01), (0.01, 0.01), (0.01, 0.0)]

TWO_LINES = {
    "type": "FeatureCollection",
    "features": [
        {"type": "Feature", "geometry": {"type": "LineString", "coordinates": [[6.9, 50.9], [7.0, 51.0]]}, "properties": {"name": "A"}},
        {"type": "Feature", "geometry": {"type": "LineString", "coordinates": [[8.0, 52.0], [8.1, 52.1]]}, "properties": {"name": "B"}},
    ],
}


@pytest.fixture
def store():
    s = FeatureStore()
    s.create(FeatureKind.POLYGON, [SQUARE], label="Existing")
    return s


class TestExport:

    def test_filename(self):
        assert export_filename(date(2024, 3, 9)) == "aoi-features-2024-03-09.geojson"

    def test_export_file(self, store, tmp_path):
        path = export_file(store, tmp_path / "out", today=date(2024, 3, 9))
        assert path.name == "aoi-features-2024-03-09.geojson"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["type"] == "FeatureCollection"
        assert data["features"][0]["properties"]["label"] == "Existing"

    def test_export_is_indented(self, store, tmp_path):
        path = export_file(store, tmp_path)
        assert '\n  "features"' in path.read_text(encoding="utf-8")


class TestImport:

    def test_import_file(self, store, tmp_path):
        path = tmp_path / "lines.geojson"
        path.write_text(json.dumps(TWO_LINES), encoding="utf-8")
        created = import_file(store, path)
        assert [f.label for f in created] == ["A", "B"]
        assert len(store) == 3

    def test_json_extension_accepted(self, store, tmp_path):
        path = tmp_path / "lines.JSON"
        path.write_text(json.dumps(TWO_LINES), encoding="utf-8")
        assert len(import_file(store, path)) == 2

    def test_other_extension_rejected(self, store, tmp_path):
        path = tmp_path / "lines.kml"
        path.write_text(json.dumps(TWO_LINES), encoding="utf-8")
        with pytest.raises(InvalidGeoJSON):
            import_file(store, path)
        assert len(store) == 1

    def test_missing_file_rejected(self, store, tmp_path):
        with pytest.raises(InvalidGeoJSON):
            import_file(store, tmp_path / "nope.geojson")

    def test_garbage_rejected_without_partial_import(self, store, tmp_path):
        path = tmp_path / "bad.geojson"
        path.write_text("{\"type\": \"FeatureCollection\", ", encoding="utf-8")
        with pytest.raises(InvalidGeoJSON):
            import_file(store, path)
        assert [f.label for f in store.list()] == ["Existing"]

    def test_bad_geometry_rejects_whole_document(self, store):
        doc = json.loads(json.dumps(TWO_LINES))
        doc["features"][1]["geometry"]["coordinates"] = [[8.0, 52.0]]
        with pytest.raises(InvalidGeoJSON):
            import_document(store, doc)
        assert len(store) == 1

    def test_import_text_and_bytes(self, store):
        text = json.dumps({"type": "Point", "coordinates": [10.0, 51.5]})
        import_document(store, text)
        import_document(store, text.encode("utf-8"))
        assert [f.kind for f in store.list()][1:] == [FeatureKind.MARKER, FeatureKind.MARKER]

    def test_export_import_roundtrip(self, store, tmp_path):
        path = export_file(store, tmp_path)
        fresh = FeatureStore()
        import_file(fresh, path)
        assert [(f.kind, f.rings, f.label) for f in fresh.list()] == [
            (f.kind, f.rings, f.label) for f in store.list()
        ]

    def test_non_utf8_bytes_rejected(self, store):
        doc = '{"type": "Feature", "geometry": {"type": "Point", "coordinates": [10.0, 51.5]}, "properties": {"label": "Caf\xe9"}}'
        with pytest.raises(InvalidGeoJSON):
            import_document(store, doc.encode("latin-1"))
        assert len(store) == 1
