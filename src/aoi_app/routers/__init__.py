"""API routers."""

from aoi_app.routers.aoi import router as aoi_router

__all__ = ["aoi_router"]
