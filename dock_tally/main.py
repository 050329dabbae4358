"""
Dock Tally Manifest Service
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from dock_tally.config import get_settings
from dock_tally.utils.logger import log
from dock_tally import __version__

# Import routers
from dock_tally.api import health, records, uploads
from dock_tally.api.deps import get_storage

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Open the configured storage backend
    storage = app.dependency_overrides.get(get_storage, get_storage)()
    log.info(f"Storage backend ready: {storage.name}")

    yield

    # Shutdown
    storage.close()
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Cargo manifest ingestion and master-list reconciliation

    - Upload ocean manifest CSV snapshots (17-column contract)
    - Maintain a master list keyed by normalized HB
    - Compare each upload with the previous one (new / updated / removed)
    - Filter, search, export and group records for the dock tally report
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Gzip compression for large record listings
from starlette.middleware.gzip import GZipMiddleware
app.add_middleware(GZipMiddleware, minimum_size=500)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(uploads.router)
app.include_router(records.router)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "status": "/status",
        "storage_backend": settings.storage_backend,
        "endpoints": {
            "upload_csv": "POST /uploads",
            "list_uploads": "GET /uploads",
            "delete_upload": "DELETE /uploads/{upload_id}",
            "upload_diff": "GET /uploads/{upload_id}/diff",
            "records": "GET /records?mode=master&filter=all",
            "metrics": "GET /records/metrics",
            "export_csv": "GET /records/export",
            "dock_tally": "GET /records/dock-tally",
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "dock_tally.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
