"""Collaborator contract for the map widget.

The map widget is not implemented here.  It owns its own layer handles and
maps them to feature ids; the core never holds a reference back into it.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from aoi_engine.features.feature import Feature, FeatureKind


class MapViewport(Protocol):
    """Map widget driven by a DrawingSession.

    The widget reports user gestures back through the session's
    ``on_geometry_drawn``, ``on_geometry_edited`` and ``on_feature_picked``
    methods.
    """

    def arm(self, kind: FeatureKind) -> None:
        """Start pointer capture for drawing *kind*."""

    def disarm(self) -> None:
        """Stop pointer capture and drop any half-drawn shape."""

    def render(self, features: Sequence[Feature]) -> None:
        """Redraw the feature layer from a store snapshot."""


class NullViewport:
    """Viewport that ignores every call (headless sessions, HTTP API)."""

    def arm(self, kind: FeatureKind) -> None:
        pass

    def disarm(self) -> None:
        pass

    def render(self, features: Sequence[Feature]) -> None:
        pass

