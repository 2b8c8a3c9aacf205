"""Health check endpoints."""

from fastapi import APIRouter, Request

from src.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe - database-backed services and the event worker."""
    settings = get_settings()
    state = request.app.state
    database = getattr(state, "progress_service", None) is not None
    dispatcher = getattr(state, "event_dispatcher", None)
    events = dispatcher is not None and dispatcher.is_running
    return {
        "status": "ready" if database else "degraded",
        "environment": settings.environment,
        "database": database,
        "events": events,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/events")
async def event_stats(request: Request) -> dict:
    """Event dispatcher counters."""
    dispatcher = getattr(request.app.state, "event_dispatcher", None)
    if dispatcher is None:
        return {"running": False}
    return dispatcher.stats()
