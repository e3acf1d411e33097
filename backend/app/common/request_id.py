"""Request ID middleware: tags each request and logs its outcome."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Probe traffic is not logged
QUIET_PATHS = frozenset({"/v1/health", "/v1/ready"})


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Accept or generate a request id, echo it back, and log latency."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        if request.url.path not in QUIET_PATHS:
            logger.info(
                "Request started",
                extra={"request_id": request_id, "method": request.method, "path": request.url.path},
            )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "Request failed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "latency_ms": int((time.perf_counter() - started) * 1000),
                },
                exc_info=True,
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id

        if request.url.path not in QUIET_PATHS:
            logger.info(
                "Request completed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "latency_ms": int((time.perf_counter() - started) * 1000),
                },
            )
        return response
