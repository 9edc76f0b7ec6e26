"""Tests for DrawingSession: mode transitions, commits, cancellation, routing."""

from __future__ import annotations

import pytest

from aoi_engine.drawing import DrawingSession, SessionState
from aoi_engine.drawing.session import HISTORY_LIMIT
from aoi_engine.features import (
    FeatureKind,
    FeatureStore,
    InvalidGeometry,
    InvalidTransition,
    MemorySlotStore,
    PersistenceAdapter,
)

pytestmark = pytest.mark.unit

SQUARE = [(0.0, 0.0), (0.0, 0.01), (0.01, 0.01), (0.01, 0.0)]


class RecordingViewport:
    """Viewport double that records arm/disarm/render calls."""

    def __init__(self):
        self.calls = []
        self.rendered = []

    def arm(self, kind):
        self.calls.append(("arm", kind))

    def disarm(self):
        self.calls.append(("disarm",))

    def render(self, features):
        self.rendered.append(features)


@pytest.fixture
def slots():
    return MemorySlotStore()


@pytest.fixture
def store(slots):
    return FeatureStore(persistence=PersistenceAdapter(slots))


@pytest.fixture
def viewport():
    return RecordingViewport()


@pytest.fixture
def session(store, viewport):
    return DrawingSession(store, viewport=viewport)


class TestDrawing:
    """start_draw / point_added / finish_draw / cancel_draw."""

    def test_initial_state_idle(self, session):
        assert session.state is SessionState.IDLE
        assert session.drawing_kind is None

    def test_draw_polygon(self, session, store, viewport):
        session.start_draw(FeatureKind.POLYGON)
        assert session.state is SessionState.DRAWING_POLYGON
        assert viewport.calls == [("arm", FeatureKind.POLYGON)]

        for point in SQUARE:
            assert session.point_added(point) is None
        assert session.points == SQUARE
        assert session.state is SessionState.DRAWING_POLYGON

        feature = session.finish_draw()
        assert session.state is SessionState.IDLE
        assert feature.kind is FeatureKind.POLYGON
        assert feature.area_sq_km == pytest.approx(1.23, rel=0.05)
        assert store.list()[0].feature_id == feature.feature_id
        assert viewport.calls[-1] == ("disarm",)

    def test_draw_polyline(self, session):
        session.start_draw("Polyline")
        session.point_added((51.0, 10.0))
        session.point_added((51.1, 10.2))
        feature = session.finish_draw()
        assert feature.kind is FeatureKind.POLYLINE
        assert feature.area_sq_km is None

    def test_marker_finishes_on_first_point(self, session, store):
        session.start_draw(FeatureKind.MARKER)
        feature = session.point_added((48.1, 11.6))
        assert feature is not None
        assert feature.kind is FeatureKind.MARKER
        assert session.state is SessionState.IDLE
        assert len(store) == 1

    def test_short_polygon_dropped(self, session, store, slots):
        session.start_draw(FeatureKind.POLYGON)
        session.point_added((0.0, 0.0))
        session.point_added((0.0, 1.0))
        with pytest.raises(InvalidGeometry):
            session.finish_draw()
        assert session.state is SessionState.IDLE
        assert session.points == []
        assert len(store) == 0
        assert slots.writes == 0

    def test_cancel_discards(self, session, store, slots, viewport):
        session.start_draw(FeatureKind.POLYGON)
        for point in SQUARE:
            session.point_added(point)
        session.cancel_draw()
        assert session.state is SessionState.IDLE
        assert session.points == []
        assert len(store) == 0
        assert slots.writes == 0
        assert viewport.calls[-1] == ("disarm",)

    def test_new_draw_cancels_previous(self, session, store):
        session.start_draw(FeatureKind.POLYGON)
        session.point_added((0.0, 0.0))
        session.start_draw(FeatureKind.POLYLINE)
        assert session.state is SessionState.DRAWING_POLYLINE
        assert session.points == []
        assert len(store) == 0

    def test_point_outside_drawing_rejected(self, session):
        with pytest.raises(InvalidTransition):
            session.point_added((0.0, 0.0))

    def test_finish_outside_drawing_rejected(self, session):
        with pytest.raises(InvalidTransition):
            session.finish_draw()

    def test_cancel_outside_drawing_rejected(self, session):
        with pytest.raises(InvalidTransition):
            session.cancel_draw()

    def test_disabled_tool_rejected(self, store):
        session = DrawingSession(store, enabled_tools=[FeatureKind.POLYGON])
        with pytest.raises(ValueError):
            session.start_draw(FeatureKind.MARKER)
        assert session.state is SessionState.IDLE

    @pytest.mark.parametrize("point", [(1.0,), None, ("a", 1.0), (float("nan"), 0.0), (91.0, 0.0)])
    def test_malformed_point_rejected(self, session, point):
        session.start_draw(FeatureKind.POLYLINE)
        session.point_added((50.9, 6.9))
        with pytest.raises(InvalidGeometry):
            session.point_added(point)
        assert session.points == [(50.9, 6.9)]
        assert session.state is SessionState.DRAWING_POLYLINE

    def test_malformed_drawn_geometry_keeps_mode(self, session, store):
        session.start_edit()
        with pytest.raises(InvalidGeometry):
            session.on_geometry_drawn(FeatureKind.POLYGON, [(0.0, 0.0), (0.0,), (1.0, 1.0)])
        assert session.state is SessionState.EDITING
        assert len(store) == 0

    def test_unknown_kind_rejected(self, session):
        with pytest.raises(ValueError):
            session.start_draw("Circle")

    def test_on_geometry_drawn(self, session):
        feature = session.on_geometry_drawn(FeatureKind.POLYGON, SQUARE)
        assert feature.rings == [SQUARE]
        assert session.state is SessionState.IDLE

    def test_draw_rectangle(self, session):
        feature = session.draw_rectangle((0.0, 0.0), (0.01, 0.01))
        assert feature.kind is FeatureKind.POLYGON
        assert len(feature.rings[0]) == 4
        assert feature.area_sq_km == pytest.approx(1.23, rel=0.05)


class TestModes:
    """Editing and deleting modes."""

    def test_edit_routes_to_update(self, session, store):
        feature = store.create(FeatureKind.POLYGON, [SQUARE])
        session.start_edit()
        assert session.state is SessionState.EDITING

        bigger = [(0.0, 0.0), (0.0, 0.02), (0.02, 0.02), (0.02, 0.0)]
        updated = session.on_geometry_edited(feature.feature_id, [bigger])
        assert updated.area_sq_km > feature.area_sq_km

        session.stop_edit()
        assert session.state is SessionState.IDLE

    def test_edit_event_outside_editing_rejected(self, session, store):
        feature = store.create(FeatureKind.POLYGON, [SQUARE])
        with pytest.raises(InvalidTransition):
            session.on_geometry_edited(feature.feature_id, [SQUARE])

    def test_delete_routes_to_remove(self, session, store):
        feature = store.create(FeatureKind.POLYGON, [SQUARE])
        session.start_delete()
        assert session.on_feature_picked(feature.feature_id) is True
        assert session.on_feature_picked(feature.feature_id) is False
        session.stop_delete()
        assert len(store) == 0

    def test_pick_outside_deleting_rejected(self, session):
        with pytest.raises(InvalidTransition):
            session.on_feature_picked("x")

    def test_stop_without_start_rejected(self, session):
        with pytest.raises(InvalidTransition):
            session.stop_edit()
        with pytest.raises(InvalidTransition):
            session.stop_delete()

    def test_delete_replaces_edit(self, session):
        session.start_edit()
        session.start_delete()
        assert session.state is SessionState.DELETING

    def test_draw_replaces_edit(self, session):
        session.start_edit()
        session.start_draw(FeatureKind.POLYGON)
        assert session.state is SessionState.DRAWING_POLYGON

    def test_edit_cancels_draw(self, session, store):
        session.start_draw(FeatureKind.POLYGON)
        for point in SQUARE:
            session.point_added(point)
        session.start_edit()
        assert session.state is SessionState.EDITING
        assert len(store) == 0

    def test_history_is_bounded(self, session):
        for _ in range(HISTORY_LIMIT):
            session.start_edit()
            session.stop_edit()
        assert len(session.history) == HISTORY_LIMIT
        assert session.history[-1] == (SessionState.EDITING, SessionState.IDLE)

    def test_history_records_transitions(self, session):
        session.start_edit()
        session.start_draw(FeatureKind.POLYLINE)
        session.cancel_draw()
        assert list(session.history) == [
            (SessionState.IDLE, SessionState.EDITING),
            (SessionState.EDITING, SessionState.IDLE),
            (SessionState.IDLE, SessionState.DRAWING_POLYLINE),
            (SessionState.DRAWING_POLYLINE, SessionState.IDLE),
        ]


class TestRendering:

    def test_viewport_renders_store_changes(self, session, store, viewport):
        session.on_geometry_drawn(FeatureKind.POLYGON, SQUARE)
        store.clear()
        assert [len(r) for r in viewport.rendered] == [1, 0]

    def test_close_stops_rendering(self, session, store, viewport):
        session.start_edit()
        session.close()
        assert session.state is SessionState.IDLE
        store.create(FeatureKind.POLYGON, [SQUARE])
        assert viewport.rendered == []

    def test_to_dict(self, session):
        session.start_draw(FeatureKind.POLYLINE)
        session.point_added((1.0, 2.0))
        data = session.to_dict()
        assert data["state"] == "drawing_polyline"
        assert data["drawing_kind"] == "Polyline"
        assert data["points"] == [[1.0, 2.0]]
        assert data["enabled_tools"] == ["Marker", "Polygon", "Polyline"]
