"""
Health check endpoints
"""

from fastapi import APIRouter, Request
import structlog

from prodmon.core.config import settings

logger = structlog.get_logger(__name__)
router = APIRouter()

@router.get("/health")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": "Production Monitoring Dashboard",
        "version": "1.0.0"
    }

@router.get("/health/detailed")
async def detailed_health_check(request: Request):
    """Health check with upstream configuration and runtime state"""
    manifest = request.app.state.manifest
    live_feed = getattr(request.app.state, "live_feed", None)

    return {
        "status": "healthy" if settings.appsync_url else "unhealthy",
        "appsync": "configured" if settings.appsync_url else "missing",
        "manifest": manifest.manifest.version if manifest.manifest else (manifest.error or "not configured"),
        "live_feed": "running" if live_feed and live_feed.running else "off",
        "sessions": len(request.app.state.sessions),
        "service": "Production Monitoring Dashboard",
        "version": "1.0.0"
    }

@router.get("/auth/urls")
async def auth_urls():
    """Hosted UI login/logout URLs"""
    return {
        "login_url": settings.login_url or None,
        "logout_url": settings.logout_url or None,
    }
