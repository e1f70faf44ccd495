"""Cache admin routes.

Learn: Operators (and the CLI's clear-cache command) use these to look
at hit rates or force-drop stale entries after a bulk data fix.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query

from taskhub.auth.dependencies import CurrentIdentity, get_current_user
from taskhub.cache.store import TTLCache, get_cache

logger = structlog.get_logger()
router = APIRouter()


@router.get("/cache")
async def cache_stats(cache: TTLCache = Depends(get_cache)):
    return cache.stats()


@router.delete("/cache")
async def clear_cache(
    pattern: Optional[str] = Query(None, description="Drop keys containing this substring"),
    cache: TTLCache = Depends(get_cache),
    identity: CurrentIdentity = Depends(get_current_user),
):
    """Clear the whole cache, or only keys containing `pattern`."""
    cleared = cache.clear(pattern)
    logger.info("cache.cleared", pattern=pattern, cleared=cleared, user_id=identity.user_id)
    return {"cleared": cleared, "pattern": pattern}
