"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running and
reports the state of the in-process pieces (cache, hub) plus Redis
when a relay is configured.
"""

from fastapi import APIRouter, Request

from taskhub import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    state = request.app.state
    checks = {"server": "ok", "version": __version__}

    checks["cache_entries"] = len(state.cache)
    checks["connections"] = len(state.hub)

    # Check Redis (only when the relay is in use)
    redis = getattr(state, "redis", None)
    if state.settings.redis_url:
        try:
            if redis is None:
                raise RuntimeError("not connected")
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {e}"
    else:
        checks["redis"] = "disabled"

    status = "healthy" if checks["redis"] in ("ok", "disabled") else "degraded"

    return {"status": status, **checks}


@router.get("/socket")
async def socket_info(request: Request):
    """Where the realtime socket lives, for clients that discover it."""
    settings = request.app.state.settings
    return {
        "path": settings.socket_path,
        "auth_required": settings.environment != "development",
    }
