"""Liveness, readiness and version endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from chainpulse.config import Settings
from chainpulse.dependencies import get_app_settings, get_broadcaster
from chainpulse.ws.broadcaster import ChangeBroadcaster

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe. Returns 200 if the process is alive."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness(broadcaster: ChangeBroadcaster = Depends(get_broadcaster)) -> JSONResponse:  # noqa: B008
    """Readiness probe: the live feed loop is running and Redis, if configured, answers.

    Webhooks are still accepted while degraded; only live fan-out is affected.
    """
    checks = {"broadcaster": "running" if broadcaster.running else "stopped"}
    if broadcaster.relay is None:
        checks["redis"] = "disabled"
    else:
        checks["redis"] = "ok" if await broadcaster.relay.ping() else "unreachable"

    ready = checks["broadcaster"] == "running" and checks["redis"] in ("ok", "disabled")
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )


@router.get("/version")
async def version(settings: Settings = Depends(get_app_settings)) -> dict[str, str]:  # noqa: B008
    """Return API version and environment."""
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
