"""Per-request access line with latency for the rental chat API."""
from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

TIMING_HEADER = "X-Response-Time-Ms"

# Orchestrator probes hit these every few seconds.
_QUIET_PATHS = frozenset({"/healthz", "/readyz"})


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers[TIMING_HEADER] = f"{elapsed_ms:.1f}"

        if response.status_code >= 500:
            level = logging.WARNING
        elif request.url.path in _QUIET_PATHS:
            level = logging.DEBUG
        else:
            level = logging.INFO
        # Route template rather than raw path, so partner and message ids do not fan out.
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        logger.log(
            level,
            "chat-api %s %s -> %d in %.1fms",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
        )
        return response
