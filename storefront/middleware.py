"""Request logging middleware."""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs one line per request and tags the response with X-Request-ID.

    Requests that end in an unhandled exception are logged with status 500
    before the exception continues to the server error handler. user_id is
    filled in by get_current_user for authenticated requests.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        logger = structlog.get_logger("api.request")

        status_code = 500
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_ip=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent"),
                user_id=getattr(request.state, "user_id", None),
                request_id=request_id,
            )

        response.headers["X-Request-ID"] = request_id
        return response
