"""DrawingSession: finite-state controller for draw/edit/delete interactions.

States:
  idle -> drawing_polygon  -> idle
  idle -> drawing_polyline -> idle
  idle -> drawing_marker   -> idle
  idle -> editing          -> idle
  idle -> deleting         -> idle

Only one non-idle mode is active at a time.  Starting a mode cancels
whatever mode was active.  A cancelled draw never reaches the store, so it
never reaches persistence either.  A draw that fails validation is dropped
(not retried) and the session returns to idle.
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Iterable, Optional, Sequence

from loguru import logger

from aoi_engine.drawing.viewport import MapViewport, NullViewport
from aoi_engine.features.errors import InvalidGeometry, InvalidTransition
from aoi_engine.features.feature import Feature, FeatureKind
from aoi_engine.features.store import FeatureStore, to_point

# Transitions kept in DrawingSession.history
HISTORY_LIMIT = 200


class SessionState(str, Enum):
    """Interaction modes of a drawing session."""
    IDLE = "idle"
    DRAWING_POLYGON = "drawing_polygon"
    DRAWING_POLYLINE = "drawing_polyline"
    DRAWING_MARKER = "drawing_marker"
    EDITING = "editing"
    DELETING = "deleting"


DRAW_STATES = {
    FeatureKind.POLYGON: SessionState.DRAWING_POLYGON,
    FeatureKind.POLYLINE: SessionState.DRAWING_POLYLINE,
    FeatureKind.MARKER: SessionState.DRAWING_MARKER,
}
_DRAW_KINDS = {state: kind for kind, state in DRAW_STATES.items()}


class DrawingSession:
    """Coordinates one in-progress map interaction and commits to a FeatureStore."""

    def __init__(
        self,
        store: FeatureStore,
        viewport: Optional[MapViewport] = None,
        enabled_tools: Optional[Iterable[FeatureKind]] = None,
    ) -> None:
        """Initialize an idle session.

        Args:
            store: Store that receives committed geometry.
            viewport: Map widget to arm for drawing and to keep rendered.
            enabled_tools: Draw kinds the user may start; all kinds if None.
        """
        self.store = store
        self.viewport = viewport or NullViewport()
        self.enabled_tools = frozenset(
            FeatureKind(k) for k in (enabled_tools if enabled_tools is not None else FeatureKind)
        )
        self.history: deque[tuple[SessionState, SessionState]] = deque(maxlen=HISTORY_LIMIT)
        self._state = SessionState.IDLE
        self._points: list[tuple[float, float]] = []
        self._unsubscribe = store.subscribe(self.viewport.render)

    def close(self) -> None:
        """Leave any active mode and stop rendering store updates."""
        self._leave_mode()
        self._unsubscribe()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def drawing_kind(self) -> Optional[FeatureKind]:
        """Kind being drawn, or None outside the drawing states."""
        return _DRAW_KINDS.get(self._state)

    @property
    def points(self) -> list[tuple[float, float]]:
        """Copy of the in-progress ring."""
        return list(self._points)

    def _transition(self, new_state: SessionState) -> None:
        if new_state is self._state:
            return
        self.history.append((self._state, new_state))
        logger.debug(f"Drawing session: {self._state.value} -> {new_state.value}")
        self._state = new_state

    def _require(self, *states: SessionState) -> None:
        if self._state not in states:
            expected = ", ".join(s.value for s in states)
            raise InvalidTransition(f"Not allowed in state '{self._state.value}' (expected {expected})")

    def _require_drawing(self) -> None:
        self._require(*DRAW_STATES.values())

    def _leave_mode(self) -> None:
        """Cancel whatever mode is active."""
        if self.drawing_kind is not None:
            self.cancel_draw()
        elif self._state is not SessionState.IDLE:
            self._transition(SessionState.IDLE)

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def start_draw(self, kind: FeatureKind) -> None:
        """Enter the drawing state for *kind* and arm the viewport.

        Raises:
            ValueError: If *kind* is unknown or not an enabled tool.
        """
        kind = FeatureKind(kind)
        if kind not in self.enabled_tools:
            raise ValueError(f"Draw tool not enabled: {kind.value}")
        self._leave_mode()
        self._points = []
        self._transition(DRAW_STATES[kind])
        self.viewport.arm(kind)

    def point_added(self, point: Sequence[float]) -> Optional[Feature]:
        """Append a (lat, lng) point to the in-progress ring.

        A marker is complete after its first point, so in the marker state
        this also finishes the draw and returns the committed feature.

        Raises:
            InvalidGeometry: If *point* is not a valid (lat, lng) pair; the
                in-progress ring is unchanged.
        """
        self._require_drawing()
        self._points.append(to_point(point))
        if self._state is SessionState.DRAWING_MARKER:
            return self.finish_draw()
        return None

    def finish_draw(self) -> Feature:
        """Commit the in-progress ring and return to idle.

        Raises:
            InvalidGeometry: If the ring is too short for its kind.  The draw
                is dropped and the session is idle afterwards.
        """
        self._require_drawing()
        kind = self.drawing_kind
        ring, self._points = self._points, []
        self.viewport.disarm()
        self._transition(SessionState.IDLE)
        try:
            return self.store.create(kind, [ring])
        except InvalidGeometry as e:
            logger.debug(f"Dropped {kind.value} draw: {e}")
            raise

    def cancel_draw(self) -> None:
        """Discard the in-progress ring and return to idle."""
        self._require_drawing()
        self._points = []
        self.viewport.disarm()
        self._transition(SessionState.IDLE)

    def on_geometry_drawn(self, kind: FeatureKind, ring: Sequence[Sequence[float]]) -> Feature:
        """Viewport callback: a complete shape was drawn in one gesture."""
        kind = FeatureKind(kind)
        points = [to_point(p) for p in ring]
        if self.drawing_kind is not kind:
            self.start_draw(kind)
        self._points = points
        return self.finish_draw()

    def draw_rectangle(self, corner_a: Sequence[float], corner_b: Sequence[float]) -> Feature:
        """Commit an axis-aligned rectangle polygon from two opposite corners."""
        (lat_a, lng_a), (lat_b, lng_b) = to_point(corner_a), to_point(corner_b)
        ring = [(lat_a, lng_a), (lat_a, lng_b), (lat_b, lng_b), (lat_b, lng_a)]
        return self.on_geometry_drawn(FeatureKind.POLYGON, ring)

    # ------------------------------------------------------------------
    # Editing / deleting
    # ------------------------------------------------------------------

    def start_edit(self) -> None:
        self._leave_mode()
        self._transition(SessionState.EDITING)

    def stop_edit(self) -> None:
        self._require(SessionState.EDITING)
        self._transition(SessionState.IDLE)

    def on_geometry_edited(self, feature_id: str, rings: Sequence[Sequence[Sequence[float]]]) -> Feature:
        """Viewport callback: an existing feature's geometry was dragged."""
        self._require(SessionState.EDITING)
        return self.store.update(feature_id, rings)

    def start_delete(self) -> None:
        self._leave_mode()
        self._transition(SessionState.DELETING)

    def stop_delete(self) -> None:
        self._require(SessionState.DELETING)
        self._transition(SessionState.IDLE)

    def on_feature_picked(self, feature_id: str) -> bool:
        """Viewport callback: a feature was clicked while deleting."""
        self._require(SessionState.DELETING)
        return self.store.remove(feature_id)

    def to_dict(self) -> dict:
        return {
            "state": self._state.value,
            "drawing_kind": self.drawing_kind.value if self.drawing_kind else None,
            "points": [list(p) for p in self._points],
            "enabled_tools": sorted(k.value for k in self.enabled_tools),
        }
