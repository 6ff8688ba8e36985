"""
PageHost — Request Context Middleware
======================================
Gives every HTTP request a correlation ID and one summary log line.

The correlation ID is read from the incoming ``X-Correlation-ID`` header or
generated as a UUID v4, exposed through ``correlation_id_ctx`` for the
logging processors, and echoed on the response. Proxied requests carry the
header to the upstream like any other client header; the upstream's
response header is overwritten with ours.

``request.completed`` replaces the uvicorn access log (silenced in
``configure_logging``). Proxy calls log the target host only, never the
encoded target URL with its query string.
"""

from __future__ import annotations

import time
import uuid
from contextvars import ContextVar

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from pagehost.core.config import get_settings
from pagehost.core.logging import get_logger

logger = get_logger(__name__)

correlation_id_ctx: ContextVar[str | None] = ContextVar(
    "correlation_id", default=None
)

PROXY_PREFIX = "/proxy/"


def _log_path(path: str) -> str:
    return PROXY_PREFIX if path.startswith(PROXY_PREFIX) else path


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Binds a correlation ID per request and logs its outcome."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        header_name = get_settings().correlation_id_header
        cid = request.headers.get(header_name) or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        token = correlation_id_ctx.set(cid)
        started = time.monotonic()
        try:
            response = await call_next(request)
            response.headers[header_name] = cid
            logger.info(
                "request.completed",
                method=request.method,
                path=_log_path(request.url.path),
                status=response.status_code,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            return response
        finally:
            correlation_id_ctx.reset(token)
