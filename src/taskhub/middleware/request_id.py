"""Request ID middleware — unique ID per request for tracing.

Learn: The web application forwards its own X-Request-ID when it calls
the emit endpoints, so one user action can be followed across both
services' logs. Otherwise a fresh UUID is generated. The ID is bound to
structlog's contextvars (rendered by merge_contextvars, see
taskhub.logging) and echoed in the response header.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate and propagate a unique request ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
