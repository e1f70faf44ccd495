"""Test fixtures — fresh app state per test, auth overridden where needed.

Learn: Testing pattern for FastAPI + in-process state:

1. Each test builds its own app with create_app() and init_state(), so
   the cache and hub never leak between tests.
2. HTTP tests use httpx's ASGITransport (no lifespan; init_state is
   enough). get_current_user is overridden with a fixed identity.
3. WebSocket tests use Starlette's TestClient as a context manager so
   the lifespan runs and every socket shares one event loop.
4. Expiry is tested with FakeClock instead of sleeping.
"""

import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from taskhub.auth.dependencies import CurrentIdentity, get_current_user
from taskhub.config import Settings
from taskhub.main import create_app, init_state
from taskhub.realtime.hub import RealtimeHub

TEST_USER_ID = "00000000-0000-0000-0000-000000000001"
TEST_COMPANY_ID = "00000000-0000-0000-0000-000000000002"


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def settings():
    return Settings(environment="development")


@pytest.fixture()
def app(settings):
    app = create_app(settings)
    init_state(app)
    return app


@pytest.fixture()
def hub():
    return RealtimeHub(outbox_size=16)


@pytest.fixture()
def connect():
    """Factory: open + connect a hub connection and join it to rooms."""

    def _connect(hub: RealtimeHub, *rooms: str, user_id=None):
        conn = hub.open(user_id=user_id)
        hub.connect(conn)
        for room in rooms:
            hub.join(conn, room)
        return conn

    return _connect


@pytest.fixture()
def drain():
    """Pop every frame currently queued on a connection's outbox."""

    def _drain(conn) -> list:
        frames = []
        while True:
            try:
                frames.append(conn.outbox.get_nowait())
            except asyncio.QueueEmpty:
                return frames

    return _drain


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client with get_current_user overridden to a fixed identity."""

    def override_get_current_user():
        return CurrentIdentity(user_id=TEST_USER_ID, company_id=TEST_COMPANY_ID)

    app.dependency_overrides[get_current_user] = override_get_current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauthenticated_client(app):
    """HTTP client WITHOUT auth override — for testing real JWT flows."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def ws_client(app):
    """Starlette TestClient with the lifespan running.

    Learn: Entering the context starts one event loop thread shared by
    every websocket_connect() and HTTP call, which is what lets a POST
    from the test reach sockets opened by the same test.
    """
    with TestClient(app) as tc:
        yield tc
