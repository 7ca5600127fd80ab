"""FastAPI middleware for request/response handling."""

from __future__ import annotations

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from cardarr.core.tracing import generate_trace_id, trace_context

logger = structlog.get_logger("cardarr.middleware")


class TracingMiddleware(BaseHTTPMiddleware):
    """Adds a trace ID to every request's logs and response headers."""

    async def dispatch(self, request: Request, call_next):
        """Use X-Trace-ID from the request if present, otherwise generate one."""
        trace_id = request.headers.get("X-Trace-ID") or generate_trace_id()

        with trace_context(trace_id):
            logger.debug("Processing request", method=request.method, path=request.url.path)

            response = await call_next(request)
            response.headers["X-Trace-ID"] = trace_id

            logger.debug(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
            )
            return response
