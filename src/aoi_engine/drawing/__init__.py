"""Drawing-mode state machine and the map widget contract."""

from aoi_engine.drawing.session import DrawingSession, SessionState
from aoi_engine.drawing.viewport import MapViewport, NullViewport

__all__ = ["DrawingSession", "MapViewport", "NullViewport", "SessionState"]
