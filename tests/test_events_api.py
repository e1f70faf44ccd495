"""Realtime API tests — HTTP emits land in the right rooms.

Learn: Sockets are simulated with hub connections created directly on
app.state.hub; each test then reads what the emit queued for them.
"""

import pytest


@pytest.fixture()
def hub(app):
    return app.state.hub


# ═══════════════════════════════════════════════════════════
# Emits
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_message_goes_to_project_room(client, hub, connect, drain):
    member = connect(hub, "project:42")
    outsider = connect(hub, "project:99")

    r = await client.post(
        "/api/v1/projects/42/messages",
        json={"content": "Concrete delivery moved to Friday", "author_name": "Ira"},
    )
    assert r.status_code == 202
    result = r.json()
    assert result["room"] == "project:42"
    assert result["event"] == "new-message"
    assert result["delivered"] == 1

    frames = drain(member)
    assert len(frames) == 1
    assert frames[0]["event"] == "new-message"
    message = frames[0]["data"]
    assert message["content"] == "Concrete delivery moved to Friday"
    assert message["author_name"] == "Ira"
    assert message["project_id"] == "42"
    assert message["id"] == result["payload"]["id"]
    assert isinstance(message["created_at"], str)

    assert drain(outsider) == []


@pytest.mark.asyncio
async def test_message_requires_content(client):
    r = await client.post("/api/v1/projects/1/messages", json={"content": ""})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_project_update_is_broadcast_as_is(client, hub, connect, drain):
    member = connect(hub, "project:5")
    update = {"status": "on_hold", "progress": 40, "stage": {"id": 3, "done": True}}

    r = await client.post("/api/v1/projects/5/updates", json=update)
    assert r.status_code == 202
    assert r.json()["delivered"] == 1
    assert drain(member) == [{"event": "project-updated", "data": update}]


@pytest.mark.asyncio
async def test_project_update_invalidates_cached_project_entries(app, client):
    cache = app.state.cache
    cache.set("/api/v1/projects/5/presence", {"connections": 0})
    cache.set("/api/v1/projects/5?include=stages", {"name": "Tower"})
    cache.set("/api/v1/projects/6/presence", {"connections": 1})

    r = await client.post("/api/v1/projects/5/updates", json={"name": "Tower B"})
    assert r.status_code == 202

    assert "/api/v1/projects/5/presence" not in cache
    assert "/api/v1/projects/5?include=stages" not in cache
    assert "/api/v1/projects/6/presence" in cache


@pytest.mark.asyncio
async def test_project_update_must_be_object(client):
    r = await client.post("/api/v1/projects/5/updates", json=[1, 2, 3])
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_notification_goes_to_user_room(client, hub, connect, drain):
    tab_1 = connect(hub, "user:u-7")
    tab_2 = connect(hub, "user:u-7")
    someone_else = connect(hub, "user:u-8")

    r = await client.post(
        "/api/v1/users/u-7/notifications",
        json={
            "title": "New task assigned",
            "message": 'You were assigned "Pour foundation"',
            "type": "info",
            "project_id": "42",
            "action_type": "task",
            "action_id": "t-19",
        },
    )
    assert r.status_code == 202
    assert r.json()["delivered"] == 2

    for tab in (tab_1, tab_2):
        frames = drain(tab)
        assert [f["event"] for f in frames] == ["notification"]
        notification = frames[0]["data"]
        assert notification["user_id"] == "u-7"
        assert notification["title"] == "New task assigned"
        assert notification["read"] is False
        assert notification["action_id"] == "t-19"

    assert drain(someone_else) == []


@pytest.mark.asyncio
async def test_notification_type_validated(client):
    r = await client.post(
        "/api/v1/users/u-7/notifications",
        json={"title": "t", "message": "m", "type": "urgent"},
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_emit_with_nobody_listening(client):
    r = await client.post("/api/v1/users/ghost/notifications", json={"title": "t", "message": "m"})
    assert r.status_code == 202
    assert r.json()["delivered"] == 0


# ═══════════════════════════════════════════════════════════
# Introspection
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_presence_lists_room_members(client, hub, connect):
    connect(hub, "project:8", user_id="u-1")
    connect(hub, "project:8", user_id="u-2")
    connect(hub, "project:8")

    r = await client.get("/api/v1/projects/8/presence")
    assert r.status_code == 200
    assert r.json() == {"room": "project:8", "connections": 3, "user_ids": ["u-1", "u-2"]}


@pytest.mark.asyncio
async def test_presence_is_cached(app, client, hub, connect):
    await client.get("/api/v1/projects/8/presence")
    connect(hub, "project:8", user_id="late")

    cached = (await client.get("/api/v1/projects/8/presence")).json()
    assert cached["connections"] == 0
    assert "/api/v1/projects/8/presence" in app.state.cache

    app.state.cache.clear("/projects/8/presence")
    fresh = (await client.get("/api/v1/projects/8/presence")).json()
    assert fresh["connections"] == 1


@pytest.mark.asyncio
async def test_room_stats(client, hub, connect):
    connect(hub, "project:1", "user:a")
    r = await client.get("/api/v1/realtime/rooms")
    assert r.json() == {"connections": 1, "rooms": {"project:1": 1, "user:a": 1}}


# ═══════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method,path",
    [
        ("post", "/api/v1/projects/1/messages"),
        ("post", "/api/v1/projects/1/updates"),
        ("post", "/api/v1/users/1/notifications"),
        ("get", "/api/v1/projects/1/presence"),
        ("get", "/api/v1/realtime/rooms"),
        ("get", "/api/v1/cache"),
    ],
)
async def test_routes_require_auth(unauthenticated_client, method, path):
    kwargs = {"json": {}} if method == "post" else {}
    r = await getattr(unauthenticated_client, method)(path, **kwargs)
    assert r.status_code == 401
