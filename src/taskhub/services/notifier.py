"""Notifier — the one place server code emits realtime events.

Learn: Route handlers never touch the hub directly. They call
new_message() / project_updated() / notification() here, which pick the
room and event name. With a Redis relay configured the event goes out
through Redis so every worker process delivers it; without one it goes
straight into the local hub.

Returned count:
- local mode: members the frame was queued for
- relay mode: processes subscribed to the relay channel
"""

from typing import Any, Optional

import structlog
from starlette.requests import HTTPConnection

from taskhub.realtime.events import (
    NEW_MESSAGE,
    NOTIFICATION,
    PROJECT_UPDATED,
    project_room,
    user_room,
)
from taskhub.realtime.hub import RealtimeHub
from taskhub.realtime.pubsub import RedisRelay

logger = structlog.get_logger()


class Notifier:
    """Server-initiated fan-out to project and user rooms."""

    def __init__(self, hub: RealtimeHub, relay: Optional[RedisRelay] = None):
        self.hub = hub
        self.relay = relay

    async def broadcast(
        self,
        room: str,
        event: str,
        data: Any = None,
        exclude: Optional[str] = None,
    ) -> int:
        if self.relay is not None:
            return await self.relay.publish(room, event, data, exclude=exclude)
        return self.hub.broadcast(room, event, data, exclude=exclude)

    async def new_message(self, project_id: str, message: dict) -> int:
        """Chat message posted in a project."""
        count = await self.broadcast(project_room(project_id), NEW_MESSAGE, message)
        logger.info("notify.new_message", project_id=project_id, delivered=count)
        return count

    async def project_updated(self, project_id: str, data: dict) -> int:
        count = await self.broadcast(project_room(project_id), PROJECT_UPDATED, data)
        logger.info("notify.project_updated", project_id=project_id, delivered=count)
        return count

    async def notification(self, user_id: str, notification: dict) -> int:
        """Personal notification for one user (all their open tabs)."""
        count = await self.broadcast(user_room(user_id), NOTIFICATION, notification)
        logger.info("notify.notification", user_id=user_id, delivered=count)
        return count


def get_notifier(request: HTTPConnection) -> Notifier:
    """FastAPI dependency — the application's notifier."""
    return request.app.state.notifier
