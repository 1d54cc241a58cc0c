"""
OAuth Routes.

FastAPI routes for the token and introspection endpoints. Both require the
client to authenticate with HTTP Basic.

Author: Keygate Team
Date: 2026-10-05
"""

import logging
import time
from typing import Dict

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic

from ..metrics import KeygateMetrics
from .exceptions import (
    ClientNotFoundError,
    InvalidClientIdOrSecretError,
    InvalidClientSecretError,
    InvalidGrantTypeError,
    OAuthError,
)
from .grants import GRANT_TYPES
from .introspect import ACCESS_TOKEN_HINT, introspect_token
from .models import AccessTokenResponse, IntrospectResponse, OAuthApplication
from .service import OAuthService

logger = logging.getLogger(__name__)

_basic = HTTPBasic(auto_error=False)

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


async def _read_form(request: Request) -> Dict[str, str]:
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


async def basic_auth_client(request: Request, service: OAuthService) -> OAuthApplication:
    """
    Authenticate the calling client from its HTTP Basic credentials.

    Raises:
        InvalidClientIdOrSecretError: If credentials are missing or wrong
    """
    try:
        credentials = await _basic(request)
    except HTTPException:
        credentials = None
    if credentials is None:
        raise InvalidClientIdOrSecretError()

    try:
        return await service.clients.auth_client(credentials.username, credentials.password)
    except (ClientNotFoundError, InvalidClientSecretError) as e:
        logger.info(f"Client authentication failed: {e.message}")
        raise InvalidClientIdOrSecretError()


def create_router(service: OAuthService, metrics: KeygateMetrics) -> APIRouter:
    """Create FastAPI router for the OAuth endpoints.

    Returns:
        Configured APIRouter
    """
    router = APIRouter(prefix="/v1/oauth", tags=["OAuth"])

    @router.post(
        "/tokens",
        response_model=AccessTokenResponse,
        response_model_exclude_none=True,
        status_code=status.HTTP_200_OK,
    )
    async def tokens(request: Request) -> JSONResponse:
        """Issue tokens for the requested grant type."""
        start = time.perf_counter()
        form = await _read_form(request)
        grant_type = form.get("grant_type", "")
        label = grant_type if grant_type in GRANT_TYPES else "unknown"

        try:
            grant_handler = GRANT_TYPES.get(grant_type)
            if grant_handler is None:
                raise InvalidGrantTypeError()
            client = await basic_auth_client(request, service)
            response = await grant_handler(service, client, form)
        except OAuthError as e:
            metrics.track_token_grant(label, type(e).__name__, time.perf_counter() - start)
            raise

        metrics.track_token_grant(label, "success", time.perf_counter() - start)
        logger.info(f"Granted {grant_type} tokens to client '{client.client_id}'")
        return JSONResponse(
            content=response.model_dump(exclude_none=True),
            headers=NO_STORE_HEADERS,
        )

    @router.post(
        "/introspect",
        response_model=IntrospectResponse,
        response_model_exclude_none=True,
        status_code=status.HTTP_200_OK,
    )
    async def introspect(request: Request) -> JSONResponse:
        """Report whether a token is currently active."""
        client = await basic_auth_client(request, service)
        form = await _read_form(request)
        response = await introspect_token(service, client, form)

        metrics.track_introspection(
            form.get("token_type_hint") or ACCESS_TOKEN_HINT, response.active
        )
        return JSONResponse(content=response.model_dump(exclude_none=True))

    return router
