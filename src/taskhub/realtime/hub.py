"""Realtime hub — room membership and best-effort fan-out.

Learn: The hub keeps a bidirectional index:

    room name     → set of connection ids
    connection id → set of room names

so broadcast() is one lookup and disconnect() can drop a connection from
every room without scanning them all.

Delivery never awaits a client. broadcast() puts the frame on each
member's outbox (a bounded asyncio.Queue) and returns; the WebSocket
endpoint runs one sender task per connection that drains the outbox.
A slow client fills its own outbox and starts losing frames. It cannot
stall the hub or other members.

Connection lifecycle:

    connecting → connected → disconnected   (terminal)

There is no resume: a client that reconnects gets a new connection and
must rejoin its rooms.
"""

import asyncio
import enum
import uuid
from typing import Any, Optional

import structlog
from starlette.requests import HTTPConnection

from taskhub.realtime.events import frame

logger = structlog.get_logger()


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class Connection:
    """One client socket as seen by the hub."""

    def __init__(self, user_id: Optional[str] = None, outbox_size: int = 256):
        self.id = uuid.uuid4().hex
        self.user_id = user_id
        self.state = ConnectionState.CONNECTING
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size)
        self.dropped = 0

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def deliver(self, message: dict) -> bool:
        """Queue a frame for the sender task. False if not connected or full."""
        if not self.is_connected:
            return False
        try:
            self.outbox.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "realtime.outbox_full",
                connection_id=self.id,
                event_name=message.get("event"),
                dropped=self.dropped,
            )
            return False
        return True

    def close_outbox(self) -> None:
        """Wake the sender task with the None sentinel so it exits."""
        try:
            self.outbox.put_nowait(None)
        except asyncio.QueueFull:
            # Make room; the connection is going away anyway
            self.outbox.get_nowait()
            self.outbox.put_nowait(None)

    def __repr__(self) -> str:
        return f"<Connection {self.id[:8]} {self.state.value} user={self.user_id}>"


class RealtimeHub:
    """Room broker for the connections of this process."""

    def __init__(self, outbox_size: int = 256):
        self.outbox_size = outbox_size
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        self._memberships: dict[str, set[str]] = {}

    # ─── Lifecycle ───────────────────────────────────────

    def open(self, user_id: Optional[str] = None) -> Connection:
        """Create a connection in the connecting state."""
        return Connection(user_id=user_id, outbox_size=self.outbox_size)

    def connect(self, conn: Connection) -> None:
        """Mark a connection live after the handshake succeeded."""
        if conn.state is not ConnectionState.CONNECTING:
            raise ValueError(f"cannot connect a connection in state {conn.state.value}")
        conn.state = ConnectionState.CONNECTED
        self._connections[conn.id] = conn
        self._memberships[conn.id] = set()
        logger.info("realtime.connected", connection_id=conn.id, user_id=conn.user_id)

    def disconnect(self, conn: Connection) -> None:
        """Terminal. Removes the connection from every room it was in."""
        if conn.state is ConnectionState.DISCONNECTED:
            return
        was_connected = conn.is_connected
        conn.state = ConnectionState.DISCONNECTED
        self._connections.pop(conn.id, None)

        for room in self._memberships.pop(conn.id, set()):
            self._discard_member(room, conn.id)

        conn.close_outbox()
        if was_connected:
            logger.info("realtime.disconnected", connection_id=conn.id)

    def shutdown(self) -> None:
        """Disconnect everyone (application stop)."""
        for conn in list(self._connections.values()):
            self.disconnect(conn)

    # ─── Rooms ───────────────────────────────────────────

    def join(self, conn: Connection, room: str) -> bool:
        """Add `conn` to `room`. False if already a member or not connected."""
        if not conn.is_connected:
            return False
        rooms = self._memberships[conn.id]
        if room in rooms:
            return False
        rooms.add(room)
        self._rooms.setdefault(room, set()).add(conn.id)
        logger.debug("realtime.joined", connection_id=conn.id, room=room)
        return True

    def leave(self, conn: Connection, room: str) -> bool:
        """Remove `conn` from `room`. False if it was not a member."""
        rooms = self._memberships.get(conn.id)
        if not rooms or room not in rooms:
            return False
        rooms.discard(room)
        self._discard_member(room, conn.id)
        logger.debug("realtime.left", connection_id=conn.id, room=room)
        return True

    def _discard_member(self, room: str, conn_id: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(conn_id)
        if not members:
            del self._rooms[room]

    def members(self, room: str) -> list[Connection]:
        return [self._connections[cid] for cid in self._rooms.get(room, ())]

    def rooms_of(self, conn: Connection) -> frozenset[str]:
        return frozenset(self._memberships.get(conn.id, ()))

    # ─── Delivery ────────────────────────────────────────

    def broadcast(
        self,
        room: str,
        event: str,
        data: Any = None,
        exclude: Optional[str] = None,
    ) -> int:
        """Queue `event` for every member of `room` except `exclude`.

        Returns how many members the frame was queued for. Fire-and-forget:
        an empty room is a silent no-op and nothing is kept for absent
        members.
        """
        member_ids = self._rooms.get(room)
        if not member_ids:
            return 0

        message = frame(event, data)
        delivered = 0
        for cid in list(member_ids):
            if cid == exclude:
                continue
            if self._connections[cid].deliver(message):
                delivered += 1

        logger.debug("realtime.broadcast", room=room, event_name=event, delivered=delivered)
        return delivered

    def stats(self) -> dict[str, Any]:
        return {
            "connections": len(self._connections),
            "rooms": {room: len(members) for room, members in sorted(self._rooms.items())},
        }

    def __len__(self) -> int:
        return len(self._connections)


def get_hub(request: HTTPConnection) -> RealtimeHub:
    """FastAPI dependency — the application's hub instance."""
    return request.app.state.hub
