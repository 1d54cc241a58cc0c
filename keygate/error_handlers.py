"""
FastAPI Exception Handlers for Keygate

Maps OAuth and record store exceptions to ``{"error": message}`` responses.

Author: Keygate Team
Date: 2026-10-06
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from .core.logging_config import get_request_id
from .oauth.exceptions import OAuthError
from .store.exceptions import StoreError

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR = "internal server error"


async def oauth_exception_handler(request: Request, exc: OAuthError) -> JSONResponse:
    """
    Handle OAuthError exceptions.

    Returns:
        JSONResponse carrying the public message and mapped status
    """
    logger.info(
        f"{request.method} {request.url.path} rejected: "
        f"{type(exc).__name__} ({exc.status_code})"
    )
    metrics = getattr(request.app.state, "metrics", None)
    if metrics is not None:
        metrics.track_error(type(exc).__name__)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=exc.headers,
    )


async def store_exception_handler(request: Request, exc: StoreError) -> JSONResponse:
    """
    Handle record store failures.

    Full detail goes to the log with the request ID; the body stays generic.
    """
    logger.error(
        f"Record store failure on {request.method} {request.url.path} "
        f"(request_id={get_request_id()}): {exc}",
        exc_info=exc,
    )
    metrics = getattr(request.app.state, "metrics", None)
    if metrics is not None:
        metrics.track_error(type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_SERVER_ERROR},
    )


def register_exception_handlers(app) -> None:
    """
    Register exception handlers with a FastAPI app.

    Args:
        app: FastAPI app instance
    """
    app.add_exception_handler(OAuthError, oauth_exception_handler)
    app.add_exception_handler(StoreError, store_exception_handler)
