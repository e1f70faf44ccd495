"""Redis relay tests.

Learn: No Redis server is available in tests, so FakeRedis below
implements just the slice of redis.asyncio the relay touches: publish()
and a pubsub() whose listen() yields what was published to subscribed
channels.
"""

import asyncio
import json

import pytest

from taskhub.realtime.events import NEW_MESSAGE
from taskhub.realtime.hub import RealtimeHub
from taskhub.realtime.pubsub import RedisRelay
from taskhub.services.notifier import Notifier


class FakePubSub:
    def __init__(self, broker: "FakeRedis"):
        self.broker = broker
        self.queue: asyncio.Queue = asyncio.Queue()
        self.channels: set[str] = set()
        self.closed = False

    async def subscribe(self, channel: str) -> None:
        self.channels.add(channel)
        self.broker.subscribers.append(self)

    async def unsubscribe(self, channel: str) -> None:
        self.channels.discard(channel)
        self.broker.subscribers.remove(self)

    async def aclose(self) -> None:
        self.closed = True

    async def listen(self):
        while True:
            yield await self.queue.get()


class FakeRedis:
    def __init__(self):
        self.subscribers: list[FakePubSub] = []

    def pubsub(self) -> FakePubSub:
        return FakePubSub(self)

    async def publish(self, channel: str, payload: str) -> int:
        receivers = [s for s in self.subscribers if channel in s.channels]
        for sub in receivers:
            sub.queue.put_nowait({"type": "message", "channel": channel, "data": payload})
        return len(receivers)


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_relay_delivers_published_events_to_local_hub(hub, connect, drain):
    redis = FakeRedis()
    relay = RedisRelay(redis, hub, "taskhub:rooms")
    await relay.start()
    try:
        conn = connect(hub, "project:42")
        receivers = await relay.publish("project:42", NEW_MESSAGE, {"content": "hi"})
        await _settle()
    finally:
        await relay.stop()

    assert receivers == 1
    assert drain(conn) == [{"event": NEW_MESSAGE, "data": {"content": "hi"}}]
    assert redis.subscribers == []


@pytest.mark.asyncio
async def test_relay_fans_out_across_processes(connect, drain):
    """Two hubs (two workers) on one Redis both deliver the event."""
    redis = FakeRedis()
    hub_a, hub_b = RealtimeHub(), RealtimeHub()
    relay_a = RedisRelay(redis, hub_a, "taskhub:rooms")
    relay_b = RedisRelay(redis, hub_b, "taskhub:rooms")
    await relay_a.start()
    await relay_b.start()
    try:
        on_a = connect(hub_a, "user:7")
        on_b = connect(hub_b, "user:7")
        await Notifier(hub_a, relay=relay_a).notification("7", {"title": "Approved"})
        await _settle()
    finally:
        await relay_a.stop()
        await relay_b.stop()

    expected = [{"event": "notification", "data": {"title": "Approved"}}]
    assert drain(on_a) == expected
    assert drain(on_b) == expected


@pytest.mark.asyncio
async def test_relay_keeps_exclude(hub, connect, drain):
    relay = RedisRelay(FakeRedis(), hub, "taskhub:rooms")
    await relay.start()
    try:
        sender = connect(hub, "project:1")
        other = connect(hub, "project:1")
        await relay.publish("project:1", "user-typing", {"isTyping": True}, exclude=sender.id)
        await _settle()
    finally:
        await relay.stop()

    assert drain(sender) == []
    assert len(drain(other)) == 1


def test_dispatch_skips_malformed_envelopes(hub, connect, drain):
    relay = RedisRelay(FakeRedis(), hub, "taskhub:rooms")
    conn = connect(hub, "project:1")

    assert relay.dispatch("not json") == 0
    assert relay.dispatch(json.dumps({"event": "x"})) == 0
    assert relay.dispatch(json.dumps(["room", "event"])) == 0
    assert drain(conn) == []

    assert relay.dispatch(json.dumps({"room": "project:1", "event": "x", "data": 5})) == 1
    assert drain(conn) == [{"event": "x", "data": 5}]


@pytest.mark.asyncio
async def test_notifier_local_mode_uses_hub(hub, connect, drain):
    notifier = Notifier(hub)
    member = connect(hub, "project:3")

    assert await notifier.new_message("3", {"content": "a"}) == 1
    assert await notifier.project_updated("3", {"status": "active"}) == 1
    assert await notifier.notification("nobody", {"title": "x"}) == 0

    assert [f["event"] for f in drain(member)] == ["new-message", "project-updated"]
