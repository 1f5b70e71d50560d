"""Logging middleware for request/response tracking."""

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from hubauth.core.logging import get_logger

logger = get_logger(__name__)

# Never logged: these carry credentials in the query string
SENSITIVE_QUERY_PATHS = ("/oauth/",)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log incoming requests and outgoing responses with structured logging."""

    async def dispatch(self, request: Request, call_next):
        """
        Log request details and response status with timing information.

        The request ID bound by RequestIDMiddleware is included through the
        structlog context. Query strings of OAuth endpoints are omitted.
        """
        start_time = time.time()
        path = str(request.url.path)

        query = request.url.query
        if query and path.startswith(SENSITIVE_QUERY_PATHS):
            query = "<redacted>"

        logger.info(
            "incoming_request",
            method=request.method,
            path=path,
            client_host=request.client.host if request.client else None,
            query_params=query or None,
        )

        response: Response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000

        logger.info(
            "request_completed",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        return response
