"""
Request ID Middleware for Keygate

Extracts or generates request IDs and propagates them through logging.

Author: Keygate Team
Date: 2026-10-06
"""

import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .core.logging_config import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to tag every request and its log lines with a request ID."""

    async def dispatch(self, request: Request, call_next):
        """Process request and inject request ID."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        set_request_id(request_id)

        start_time = time.time()
        logger.debug(f"Request started: {request.method} {request.url.path}")

        try:
            response: Response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                f"{request.method} {request.url.path} - {response.status_code} "
                f"({duration_ms:.2f}ms)"
            )
            return response

        except Exception:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.url.path} ({duration_ms:.2f}ms)",
                exc_info=True,
            )
            raise
        finally:
            clear_request_id()
