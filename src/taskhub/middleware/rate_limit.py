"""Rate limiting middleware — fixed per-minute window per client IP.

Learn: Counters live in the application's TTLCache under
"ratelimit:{ip}:{minute}" with a 2-minute TTL, so old windows expire on
their own (lazily or via the sweeper). The cache is per process, so with
N workers the effective limit is N × rpm — good enough to stop a runaway
client, not a billing-grade quota.

Only /api/v1 requests are counted; health checks and the WebSocket
upgrade are not. Skips limiting entirely if the app has no cache yet.
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP requests-per-minute limit backed by the TTL cache."""

    def __init__(self, app, rpm: int = 300, prefix: str = "/api/v1"):
        super().__init__(app)
        self.rpm = rpm
        self.prefix = prefix

    async def dispatch(self, request: Request, call_next) -> Response:
        cache = getattr(request.app.state, "cache", None)
        path = request.url.path
        if cache is None or not path.startswith(self.prefix) or path.endswith("/health"):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        window = int(time.time() // 60)
        key = f"ratelimit:{client_ip}:{window}"

        count = cache.peek(key, 0) + 1
        cache.set(key, count, ttl=120)

        if count > self.rpm:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.rpm - count))
        return response
