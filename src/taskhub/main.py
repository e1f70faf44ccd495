"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The app owns its shared state on app.state:

    settings  — the Settings this app was built with
    cache     — TTLCache for handlers and the rate limiter
    hub       — RealtimeHub holding this process's sockets
    notifier  — Notifier (local hub, or Redis relay when configured)

init_state() builds those once; calling it again returns the same
objects. Lifespan manages the rest: Redis relay, cache sweeper, and
disconnecting sockets on shutdown.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskhub import __version__
from taskhub.api import api_router
from taskhub.cache import CacheSweeper, TTLCache
from taskhub.config import Settings, settings as default_settings
from taskhub.logging import configure_logging
from taskhub.realtime.hub import RealtimeHub
from taskhub.services.notifier import Notifier

logger = structlog.get_logger()


def init_state(app: FastAPI) -> RealtimeHub:
    """Create the cache, hub and notifier on app.state (idempotent)."""
    state = app.state
    hub = getattr(state, "hub", None)
    if hub is not None:
        return hub

    settings: Settings = state.settings
    state.cache = TTLCache(default_ttl=settings.cache_default_ttl)
    state.hub = RealtimeHub(outbox_size=settings.socket_outbox_size)
    state.notifier = Notifier(state.hub)
    state.redis = None
    return state.hub


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(
        "taskhub.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    hub = init_state(app)

    # Redis relay — optional, app falls back to single-process delivery
    relay = None
    if settings.redis_url:
        from taskhub.realtime.pubsub import RedisRelay, connect_redis

        try:
            app.state.redis = await connect_redis(settings.redis_url)
            relay = RedisRelay(app.state.redis, hub, settings.redis_channel)
            await relay.start()
            app.state.notifier.relay = relay
            logger.info("taskhub.redis_connected", url=settings.redis_url)
        except Exception as e:
            logger.warning("taskhub.redis_unavailable", error=str(e))
            relay = None
            if app.state.redis is not None:
                await app.state.redis.aclose()
                app.state.redis = None

    # Cache sweeper
    sweeper = CacheSweeper(app.state.cache, interval=settings.cache_sweep_interval)
    sweep_task = asyncio.create_task(sweeper.run_loop())

    yield

    # Shutdown
    logger.info("taskhub.shutdown")

    sweeper.stop()
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass

    hub.shutdown()

    if relay is not None:
        app.state.notifier.relay = None
        await relay.stop()
    if app.state.redis is not None:
        await app.state.redis.aclose()
        app.state.redis = None


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings
    configure_logging(settings.log_level, json_logs=settings.log_json)

    app = FastAPI(
        title="Taskhub Realtime",
        description="Realtime rooms, notifications and caching for the project workspace",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from taskhub.middleware.rate_limit import RateLimitMiddleware
    from taskhub.middleware.request_id import RequestIdMiddleware
    from taskhub.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RateLimitMiddleware, rpm=settings.rate_limit_rpm)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router)

    # Mount the realtime socket
    from taskhub.realtime.websocket import realtime_socket
    app.add_api_websocket_route(settings.socket_path, realtime_socket)

    return app


# Default app instance (used by uvicorn: taskhub.main:app)
app = create_app()
