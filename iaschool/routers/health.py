"""Health check endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
import logging

from ..core.cache import cache_manager
from ..core.config import settings
from ..core.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])


@router.get("/")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


@router.get("/db-health")
async def database_health(db: AsyncSession = Depends(get_db)):
    """Database health check"""
    try:
        result = await db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected", "result": result.scalar()}
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": str(e),
            "error_type": type(e).__name__
        }


@router.get("/cache-health")
async def cache_health():
    """Redis cache health check"""
    if not cache_manager.enabled:
        return {"status": "disabled", "cache": "redis"}
    healthy = await cache_manager.ping()
    return {"status": "healthy" if healthy else "unhealthy", "cache": "redis"}
