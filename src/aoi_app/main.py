"""AOI Studio - Area of Interest definition service.

Main FastAPI application.
"""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from aoi_app.config import settings
from aoi_app.routers import aoi_router
from aoi_app.routers.aoi import configure, create_store

__version__ = "0.1.0"


def configure_logging() -> None:
    """Route loguru output to stderr at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if settings.debug else settings.log_level.upper())


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    configure_logging()
    logger.info(f"{settings.app_name} v{__version__} - initializing")

    if settings.persistence_backend == "memory":
        logger.info("Persistence: in-memory (features are lost on restart)")
    else:
        logger.info(f"Persistence: {settings.data_dir} (key '{settings.persistence_key}')")

    store = create_store()
    configure(store)
    app.state.feature_store = store
    logger.info(
        f"Draw tools: {', '.join(k.value for k in settings.enabled_tools)}; "
        f"{len(store)} features restored"
    )

    yield

    logger.info(f"{settings.app_name} shutting down...")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Draw, manage and exchange map areas of interest",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(aoi_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "operational",
        "version": __version__,
        "system": settings.app_name,
    }


def main() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run("aoi_app.main:app", host=settings.host, port=settings.port, reload=settings.debug)


if __name__ == "__main__":
    main()
