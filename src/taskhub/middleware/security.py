"""Security headers middleware.

Learn: Every JSON response from this service is per-user and short-lived,
so besides the usual hardening headers it is marked non-cacheable for
browsers and shared proxies:
- X-Content-Type-Options: no MIME sniffing
- X-Frame-Options: no framing
- Referrer-Policy: limit referrer leakage
- Cache-Control: no-store (API responses only)
- Strict-Transport-Security: HTTPS connections only
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all HTTP responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/"):
            response.headers.setdefault("Cache-Control", "no-store")
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response
