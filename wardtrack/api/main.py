"""Main FastAPI application for Ward Tracker.

This module sets up the FastAPI application with all routes, middleware,
and configuration for the ward API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wardtrack.api.dependencies import get_mirror, get_record_store
from wardtrack.api.logging_config import setup_logging
from wardtrack.api.middleware import setup_middleware
from wardtrack.api.routes import health, notes, patients, specialties
from wardtrack.infrastructure.settings import APP_VERSION, settings

setup_logging(use_json=settings.json_logs, log_level=settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    logger.info(f"{settings.app_name} API starting up...")
    logger.info("API documentation available at /api/docs")
    logger.info(f"Logging level: {settings.log_level}")
    yield
    logger.info(f"{settings.app_name} API shutting down...")
    # Only close what a request actually created
    if get_record_store.cache_info().currsize:
        get_record_store().close()
    if get_mirror.cache_info().currsize:
        get_mirror().close()


app = FastAPI(
    title=f"{settings.app_name} API",
    description="Patient admission, notes and discharge API for hospital wards",
    version=APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Process-Time"],
)

setup_middleware(app)

app.include_router(health.router)
app.include_router(patients.router)
app.include_router(notes.router)
app.include_router(specialties.router)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": f"{settings.app_name} API",
        "version": APP_VERSION,
        "docs": "/api/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "wardtrack.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
