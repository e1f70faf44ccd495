"""WebSocket endpoint — room joins from clients, event delivery to them.

Learn: Each browser tab opens one socket at /api/socket?token=JWT.
The handler:
1. Authenticates via JWT query param (required outside development)
2. Registers a hub connection and auto-joins user:<id> when authenticated
3. Runs two tasks side by side:
   - sender: drains the connection's outbox into the socket
   - receiver: reads client frames (join/leave/typing/ping)
4. When either side stops, cancels the other and disconnects from the hub

Every frame is {"event": ..., "data": ...}. Protocol mistakes (bad JSON,
unknown event) get an "error" frame back and the socket stays open.
Transport errors end the connection.
"""

import asyncio
import json

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from taskhub.auth.jwt import TokenError, verify_token
from taskhub.cache.store import TTLCache
from taskhub.realtime import events
from taskhub.realtime.events import frame, project_room, user_room
from taskhub.realtime.hub import Connection, RealtimeHub
from taskhub.schemas.events import ClientFrame, TypingData
from taskhub.services.notifier import Notifier

logger = structlog.get_logger()


async def realtime_socket(websocket: WebSocket):
    """WebSocket endpoint for project and user rooms.

    Learn: Registered in create_app() at settings.socket_path rather than
    with a decorator, so the path stays configurable.
    """
    state = websocket.app.state
    settings = state.settings
    hub: RealtimeHub = state.hub

    # ── Authentication ──────────────────────────────────────
    token = websocket.query_params.get("token")

    if not token and settings.environment != "development":
        await websocket.close(code=4001, reason="Authentication required")
        return

    user_id = None
    if token:
        try:
            user_id = str(verify_token(token, settings)["sub"])
        except TokenError:
            await websocket.close(code=4001, reason="Invalid or expired token")
            return

    conn = hub.open(user_id=user_id)
    log = logger.bind(connection_id=conn.id, user_id=user_id)

    try:
        await websocket.accept()
    except Exception as e:
        log.warning("realtime.handshake_failed", error=str(e))
        hub.disconnect(conn)
        return

    # ── Connection accepted ─────────────────────────────────
    hub.connect(conn)
    if user_id:
        hub.join(conn, user_room(user_id))

    handler = _ClientHandler(conn, hub, state.notifier, state.cache)
    sender_task = asyncio.create_task(_sender(websocket, conn))
    receiver_task = asyncio.create_task(_receiver(websocket, handler))

    try:
        done, _ = await asyncio.wait(
            [sender_task, receiver_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                log.warning("realtime.transport_error", error=str(task.exception()))
    finally:
        sender_task.cancel()
        receiver_task.cancel()
        handler.forget_presence()
        hub.disconnect(conn)
        if websocket.client_state == WebSocketState.CONNECTED:
            try:
                await websocket.close()
            except RuntimeError:
                # Close raced with the client's own disconnect
                pass


async def _sender(websocket: WebSocket, conn: Connection) -> None:
    """Forward outbox frames to the client until the None sentinel."""
    while True:
        message = await conn.outbox.get()
        if message is None:
            return
        await websocket.send_json(message)


async def _receiver(websocket: WebSocket, handler: "_ClientHandler") -> None:
    """Read client frames until the client goes away."""
    try:
        while True:
            raw = await websocket.receive_text()
            await handler.handle_raw(raw)
    except WebSocketDisconnect:
        pass


class _ClientHandler:
    """Applies client → server events for one connection."""

    def __init__(self, conn: Connection, hub: RealtimeHub, notifier: Notifier, cache: TTLCache):
        self.conn = conn
        self.hub = hub
        self.notifier = notifier
        self.cache = cache
        self._handlers = {
            events.JOIN_PROJECT: self.join_project,
            events.LEAVE_PROJECT: self.leave_project,
            events.JOIN_USER: self.join_user,
            events.LEAVE_USER: self.leave_user,
            events.TYPING: self.typing,
            events.PING: self.ping,
        }

    def reply(self, event: str, data=None) -> None:
        self.conn.deliver(frame(event, data))

    def error(self, detail: str) -> None:
        self.reply(events.ERROR, {"detail": detail})

    async def handle_raw(self, raw: str) -> None:
        try:
            msg = ClientFrame.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            self.error("Malformed frame")
            return

        handler = self._handlers.get(msg.event)
        if handler is None:
            self.error(f"Unknown event: {msg.event}")
            return
        await handler(msg.data)

    # ─── Rooms ───────────────────────────────────────────

    def _presence_changed(self, project_id) -> None:
        self.cache.clear(f"/projects/{project_id}/presence")

    def forget_presence(self) -> None:
        """Drop cached presence for every project room this connection is in."""
        prefix = project_room("")
        for room in self.hub.rooms_of(self.conn):
            if room.startswith(prefix):
                self._presence_changed(room[len(prefix):])

    async def join_project(self, project_id) -> None:
        if not _is_id(project_id):
            self.error("join-project expects a project id")
            return
        room = project_room(project_id)
        if self.hub.join(self.conn, room):
            self._presence_changed(project_id)
        self.reply(events.JOINED, {"room": room})

    async def leave_project(self, project_id) -> None:
        if not _is_id(project_id):
            self.error("leave-project expects a project id")
            return
        room = project_room(project_id)
        if self.hub.leave(self.conn, room):
            self._presence_changed(project_id)
        self.reply(events.LEFT, {"room": room})

    async def join_user(self, user_id) -> None:
        if not _is_id(user_id):
            self.error("join-user expects a user id")
            return
        # Authenticated sockets may only listen to their own notifications
        if self.conn.user_id is not None and str(user_id) != self.conn.user_id:
            self.error("Cannot join another user's room")
            return
        room = user_room(user_id)
        self.hub.join(self.conn, room)
        self.reply(events.JOINED, {"room": room})

    async def leave_user(self, user_id) -> None:
        if not _is_id(user_id):
            self.error("leave-user expects a user id")
            return
        room = user_room(user_id)
        self.hub.leave(self.conn, room)
        self.reply(events.LEFT, {"room": room})

    # ─── Relayed ─────────────────────────────────────────

    async def typing(self, data) -> None:
        try:
            typing = TypingData.model_validate(data)
        except ValidationError:
            self.error("typing expects {projectId, userName, isTyping}")
            return
        await self.notifier.broadcast(
            project_room(typing.projectId),
            events.USER_TYPING,
            {"userName": typing.userName, "isTyping": typing.isTyping},
            exclude=self.conn.id,
        )

    async def ping(self, data) -> None:
        self.reply(events.PONG, data)


def _is_id(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and 0 < len(value) <= 128
