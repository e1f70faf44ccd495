"""Redis pub/sub relay — fan-out across worker processes.

Learn: The hub only knows the sockets of its own process. When the app
runs with several workers, a broadcast issued in worker A must also
reach sockets held by worker B. With TASKHUB_REDIS_URL set:

1. Notifier → Redis PUBLISH (one channel for every room)
2. Every process → SUBSCRIBE → local hub.broadcast()

Redis pub/sub is fire-and-forget, which matches the hub's own
guarantees: members that aren't listening right now miss the event.

Envelope on the wire:
    {"room": "project:42", "event": "new-message", "data": {...}, "exclude": null}
"""

import asyncio
import json
from typing import Any, Optional

import redis.asyncio as aioredis
import structlog

from taskhub.realtime.hub import RealtimeHub

logger = structlog.get_logger()


async def connect_redis(url: str) -> aioredis.Redis:
    """Open a Redis connection pool and verify it answers."""
    client = aioredis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
    )
    await client.ping()
    return client


class RedisRelay:
    """Publishes hub broadcasts to Redis and replays them into the local hub."""

    def __init__(self, redis: aioredis.Redis, hub: RealtimeHub, channel: str):
        self.redis = redis
        self.hub = hub
        self.channel = channel
        self._task: Optional[asyncio.Task] = None
        self._ready = asyncio.Event()

    async def publish(
        self,
        room: str,
        event: str,
        data: Any = None,
        exclude: Optional[str] = None,
    ) -> int:
        """Publish an envelope. Returns the number of subscribed processes."""
        payload = json.dumps(
            {"room": room, "event": event, "data": data, "exclude": exclude},
            default=str,
        )
        return await self.redis.publish(self.channel, payload)

    def dispatch(self, raw: str) -> int:
        """Feed one received envelope into the local hub."""
        try:
            envelope = json.loads(raw)
            room = envelope["room"]
            event = envelope["event"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("relay.bad_envelope", error=str(e))
            return 0
        return self.hub.broadcast(
            room,
            event,
            envelope.get("data"),
            exclude=envelope.get("exclude"),
        )

    async def listen(self) -> None:
        """Subscribe and forward every message until cancelled."""
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel)
        self._ready.set()
        logger.info("relay.subscribed", channel=self.channel)
        try:
            async for message in pubsub.listen():
                if message["type"] == "message":
                    self.dispatch(message["data"])
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()

    async def start(self) -> None:
        """Start the listener task and wait until the subscription is live."""
        self._task = asyncio.create_task(self.listen())
        self._task.add_done_callback(self._log_exit)
        ready = asyncio.create_task(self._ready.wait())
        done, _ = await asyncio.wait(
            [self._task, ready], return_when=asyncio.FIRST_COMPLETED
        )
        if self._task in done:
            ready.cancel()
            # Surface the subscribe failure to the caller
            await self._task

    def _log_exit(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("relay.listener_failed", channel=self.channel, error=str(exc))

    async def stop(self) -> None:
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("relay.stopped", channel=self.channel)
