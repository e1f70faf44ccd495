"""Realtime API routes — server code triggers socket events over HTTP.

Learn: The web application's handlers (chat, project edits, task
assignment) call these after their own database writes. Each route just
shapes the payload and hands it to the Notifier; delivery is
best-effort, so `delivered` may be 0 when nobody is listening.

Key patterns:
- POST for emits (not idempotent: every call is a new event)
- Project updates also invalidate cached project responses
- Presence is read-mostly, so it is cached briefly
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from taskhub.cache.store import TTLCache, cache_key_for, get_cache
from taskhub.realtime.events import (
    NEW_MESSAGE,
    NOTIFICATION,
    PROJECT_UPDATED,
    project_room,
    user_room,
)
from taskhub.realtime.hub import RealtimeHub, get_hub
from taskhub.schemas.events import (
    EmitResult,
    MessageCreate,
    MessageRead,
    NotificationCreate,
    NotificationRead,
)
from taskhub.services.notifier import Notifier, get_notifier

router = APIRouter()


# ═══════════════════════════════════════════════════════════
# Emits
# ═══════════════════════════════════════════════════════════


@router.post("/projects/{project_id}/messages", response_model=EmitResult, status_code=202)
async def emit_message(
    project_id: str,
    body: MessageCreate,
    notifier: Notifier = Depends(get_notifier),
):
    """Broadcast a chat message to everyone in the project room."""
    message = MessageRead(project_id=project_id, **body.model_dump()).model_dump(mode="json")
    delivered = await notifier.new_message(project_id, message)
    return EmitResult(
        room=project_room(project_id),
        event=NEW_MESSAGE,
        delivered=delivered,
        payload=message,
    )


@router.post("/projects/{project_id}/updates", response_model=EmitResult, status_code=202)
async def emit_project_update(
    project_id: str,
    data: dict[str, Any] = Body(...),
    notifier: Notifier = Depends(get_notifier),
    cache: TTLCache = Depends(get_cache),
):
    """Broadcast a project change and drop cached project responses."""
    cache.clear(f"/projects/{project_id}")
    delivered = await notifier.project_updated(project_id, data)
    return EmitResult(
        room=project_room(project_id),
        event=PROJECT_UPDATED,
        delivered=delivered,
        payload=data,
    )


@router.post("/users/{user_id}/notifications", response_model=EmitResult, status_code=202)
async def emit_notification(
    user_id: str,
    body: NotificationCreate,
    notifier: Notifier = Depends(get_notifier),
):
    """Push a personal notification to a user's open sessions."""
    notification = NotificationRead(user_id=user_id, **body.model_dump()).model_dump(mode="json")
    delivered = await notifier.notification(user_id, notification)
    return EmitResult(
        room=user_room(user_id),
        event=NOTIFICATION,
        delivered=delivered,
        payload=notification,
    )


# ═══════════════════════════════════════════════════════════
# Introspection
# ═══════════════════════════════════════════════════════════


@router.get("/projects/{project_id}/presence")
async def project_presence(
    project_id: str,
    request: Request,
    hub: RealtimeHub = Depends(get_hub),
    cache: TTLCache = Depends(get_cache),
):
    """Who is connected to a project room (this process only)."""
    key = cache_key_for(request)
    cached = cache.get(key)
    if cached is not None:
        return cached

    room = project_room(project_id)
    members = hub.members(room)
    result = {
        "room": room,
        "connections": len(members),
        "user_ids": sorted({c.user_id for c in members if c.user_id}),
    }
    cache.set(key, result, ttl=request.app.state.settings.presence_cache_ttl)
    return result


@router.get("/realtime/rooms")
async def room_stats(hub: RealtimeHub = Depends(get_hub)):
    """Connection count and member count per room."""
    return hub.stats()
