"""Request ID + access log middleware.

Learn: Every request gets a UUID, either from the incoming X-Request-ID
header (for distributed tracing) or auto-generated. The ID is bound to
structlog's contextvars so every log entry written while handling the
request carries it, and it is echoed in the response header.

One `http.request` line per request records method, path, status and
duration. Paths are logged, query strings are not; verification and
reset tokens appear in paths, so only the route prefix is logged for
those.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

# Path segments after these prefixes are secrets.
_REDACTED_PREFIXES = (
    "/api/v1/users/verify-now/",
    "/api/v1/users/reset-password-now/",
)


def _loggable_path(path: str) -> str:
    for prefix in _REDACTED_PREFIXES:
        if path.startswith(prefix):
            return prefix + "<redacted>"
    return path


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate and propagate a unique request ID, log each request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "http.request",
            method=request.method,
            path=_loggable_path(request.url.path),
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
