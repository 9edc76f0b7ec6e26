"""AOI feature API endpoints.

Backs the map sidebar: feature list, visibility and rename, statistics,
GeoJSON import/export, and the drawing session that the map widget drives.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, HTTPException
from fastapi.responses import Response
from loguru import logger
from pydantic import BaseModel

from aoi_app.config import settings
from aoi_engine.drawing import DrawingSession
from aoi_engine.features import (
    AOIError,
    FeatureKind,
    FeatureStore,
    FileSlotStore,
    InvalidGeometry,
    InvalidGeoJSON,
    InvalidTransition,
    MemorySlotStore,
    NotFound,
    PersistenceAdapter,
)
from aoi_engine.features.feature import Feature
from aoi_engine.features.geometry import format_area
from aoi_engine.features.transfer import export_filename, export_text, import_document

router = APIRouter(prefix="/api/aoi", tags=["aoi"])

_store: Optional[FeatureStore] = None
_session: Optional[DrawingSession] = None


def create_store() -> FeatureStore:
    """Build a store from settings, seeded from the configured slot."""
    if settings.persistence_backend == "memory":
        slots = MemorySlotStore()
    else:
        slots = FileSlotStore(settings.data_dir)
    adapter = PersistenceAdapter(slots, key=settings.persistence_key)
    return FeatureStore.from_persistence(
        adapter,
        default_visible=settings.default_visible,
        label_prefix=settings.label_prefix,
    )


def configure(store: FeatureStore, session: Optional[DrawingSession] = None) -> None:
    """Install the store (and session) served by this router."""
    global _store, _session
    if _session is not None:
        _session.close()
    _store = store
    _session = session or DrawingSession(store, enabled_tools=settings.enabled_tools)


def get_store() -> FeatureStore:
    """Get or create the feature store singleton."""
    if _store is None:
        configure(create_store())
    return _store


def get_session() -> DrawingSession:
    """Get or create the drawing session singleton."""
    get_store()
    return _session


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidTransition):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _parse_kind(kind: str) -> FeatureKind:
    try:
        return FeatureKind(kind)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid kind. Must be one of: {[k.value for k in FeatureKind]}",
        )


# ==================
# Request/Response Models
# ==================

class CreateFeatureRequest(BaseModel):
    """Request to create a feature from finished geometry."""
    kind: str  # Polygon, Polyline, Marker
    rings: list[list[list[float]]]  # [[[lat, lng], ...], ...]
    label: Optional[str] = None


class UpdateGeometryRequest(BaseModel):
    """Replacement geometry for an existing feature."""
    rings: list[list[list[float]]]


class UpdateFeatureRequest(BaseModel):
    """Rename and/or show/hide a feature."""
    label: Optional[str] = None
    visible: Optional[bool] = None


class FeatureResponse(BaseModel):
    """Feature response model."""
    id: str
    kind: str
    rings: list[list[list[float]]]
    label: str
    visible: bool
    area_sq_km: Optional[float]
    area_display: Optional[str]


class StartDrawRequest(BaseModel):
    kind: str


class PointRequest(BaseModel):
    lat: float
    lng: float


class ModeRequest(BaseModel):
    active: bool


class EditedRequest(BaseModel):
    feature_id: str
    rings: list[list[list[float]]]


class PickedRequest(BaseModel):
    feature_id: str


def _feature_to_response(feature: Feature) -> FeatureResponse:
    data = feature.to_dict()
    area = data["area_sq_km"]
    return FeatureResponse(
        **data,
        area_display=format_area(area) if area is not None else None,
    )


# ==================
# Feature CRUD Endpoints
# ==================

@router.get("/features", response_model=list[FeatureResponse])
async def list_features():
    """List all features in display order."""
    return [_feature_to_response(f) for f in get_store().list()]


@router.get("/features/{feature_id}", response_model=FeatureResponse)
async def get_feature(feature_id: str):
    """Get a feature by ID."""
    try:
        return _feature_to_response(get_store().get(feature_id))
    except NotFound as e:
        raise _http_error(e)


@router.post("/features", response_model=FeatureResponse)
async def create_feature(request: CreateFeatureRequest):
    """Create a feature from finished geometry."""
    kind = _parse_kind(request.kind)
    try:
        feature = get_store().create(kind, request.rings, label=request.label)
    except InvalidGeometry as e:
        raise _http_error(e)
    return _feature_to_response(feature)


@router.put("/features/{feature_id}/geometry", response_model=FeatureResponse)
async def update_geometry(feature_id: str, request: UpdateGeometryRequest):
    """Replace a feature's geometry."""
    try:
        return _feature_to_response(get_store().update(feature_id, request.rings))
    except (NotFound, InvalidGeometry) as e:
        raise _http_error(e)


@router.patch("/features/{feature_id}", response_model=FeatureResponse)
async def update_feature(feature_id: str, request: UpdateFeatureRequest):
    """Rename and/or toggle visibility of a feature."""
    store = get_store()
    try:
        feature = store.get(feature_id)
        if request.label is not None:
            feature = store.rename(feature_id, request.label)
        if request.visible is not None:
            feature = store.set_visible(feature_id, request.visible)
    except (NotFound, ValueError) as e:
        raise _http_error(e)
    return _feature_to_response(feature)


@router.delete("/features/{feature_id}")
async def delete_feature(feature_id: str):
    """Delete a feature.  Deleting a missing feature is not an error."""
    return {"deleted": get_store().remove(feature_id)}


@router.delete("/features")
async def clear_features():
    """Delete every feature."""
    store = get_store()
    count = len(store)
    store.clear()
    return {"deleted": count}


@router.get("/stats")
async def get_stats():
    """Feature counts and total visible polygon area."""
    return get_store().stats()


# ==================
# Import / Export
# ==================

@router.get("/export")
async def export_features():
    """Download all features as a dated .geojson file."""
    filename = export_filename()
    return Response(
        content=export_text(get_store()),
        media_type="application/geo+json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=list[FeatureResponse])
async def import_features(document: dict = Body(...)):
    """Import a FeatureCollection, Feature or Geometry document.

    The import is all-or-nothing; on failure the store is unchanged.
    """
    try:
        features = import_document(get_store(), document)
    except InvalidGeoJSON as e:
        logger.warning(f"Rejected GeoJSON import: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid GeoJSON: {e}")
    return [_feature_to_response(f) for f in features]


# ==================
# Drawing Session
# ==================

@router.get("/session")
async def session_state():
    """Current drawing mode and in-progress points."""
    return get_session().to_dict()


@router.post("/session/draw")
async def start_draw(request: StartDrawRequest):
    """Enter drawing mode for a kind, cancelling any active mode."""
    session = get_session()
    try:
        session.start_draw(_parse_kind(request.kind))
    except ValueError as e:
        raise _http_error(e)
    return session.to_dict()


@router.post("/session/points")
async def add_point(request: PointRequest):
    """Append a point to the in-progress shape."""
    session = get_session()
    try:
        feature = session.point_added((request.lat, request.lng))
    except AOIError as e:
        raise _http_error(e)
    result = session.to_dict()
    result["feature"] = _feature_to_response(feature).model_dump() if feature else None
    return result


@router.post("/session/finish", response_model=FeatureResponse)
async def finish_draw():
    """Commit the in-progress shape."""
    try:
        return _feature_to_response(get_session().finish_draw())
    except AOIError as e:
        raise _http_error(e)


@router.post("/session/cancel")
async def cancel_draw():
    """Discard the in-progress shape."""
    session = get_session()
    try:
        session.cancel_draw()
    except InvalidTransition as e:
        raise _http_error(e)
    return session.to_dict()


@router.post("/session/edit")
async def toggle_edit(request: ModeRequest):
    """Enter or leave editing mode."""
    session = get_session()
    try:
        if request.active:
            session.start_edit()
        else:
            session.stop_edit()
    except InvalidTransition as e:
        raise _http_error(e)
    return session.to_dict()


@router.post("/session/edited", response_model=FeatureResponse)
async def geometry_edited(request: EditedRequest):
    """Map widget report: a feature's geometry was changed while editing."""
    try:
        return _feature_to_response(get_session().on_geometry_edited(request.feature_id, request.rings))
    except AOIError as e:
        raise _http_error(e)


@router.post("/session/delete")
async def toggle_delete(request: ModeRequest):
    """Enter or leave delete mode."""
    session = get_session()
    try:
        if request.active:
            session.start_delete()
        else:
            session.stop_delete()
    except InvalidTransition as e:
        raise _http_error(e)
    return session.to_dict()


@router.post("/session/picked")
async def feature_picked(request: PickedRequest):
    """Map widget report: a feature was clicked while in delete mode."""
    try:
        return {"deleted": get_session().on_feature_picked(request.feature_id)}
    except InvalidTransition as e:
        raise _http_error(e)
