"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. This protects all routes in each router
without modifying individual handlers. The health router is open.
"""

from fastapi import APIRouter, Depends

from taskhub.api.cache import router as cache_router
from taskhub.api.events import router as events_router
from taskhub.api.health import router as health_router
from taskhub.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])

# Protected routes — require a valid JWT
api_router.include_router(events_router, tags=["realtime"], dependencies=_auth)
api_router.include_router(cache_router, tags=["cache"], dependencies=_auth)
