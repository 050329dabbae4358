"""
Health check and status endpoints
"""
from fastapi import APIRouter
from datetime import datetime, timezone
from dock_tally.config import get_settings
from dock_tally import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status():
    """Get system status"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "storage_backend": settings.storage_backend,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
