"""
Token introspection (RFC 7662).

A token that fails validation is reported as ``{"active": false}``; only a
malformed request is an error.

Author: Keygate Team
Date: 2026-10-05
"""

import logging
from datetime import datetime
from typing import Mapping

from .exceptions import (
    AccessTokenExpiredError,
    AccessTokenNotFoundError,
    RefreshTokenExpiredError,
    RefreshTokenNotFoundError,
    TokenHintInvalidError,
    TokenMissingError,
)
from .models import TOKEN_TYPE_BEARER, IntrospectResponse, OAuthApplication
from .service import OAuthService

logger = logging.getLogger(__name__)

ACCESS_TOKEN_HINT = "access_token"
REFRESH_TOKEN_HINT = "refresh_token"


async def _describe(
    service: OAuthService,
    scope: str,
    expires_at: datetime,
    client_record_id: str,
    user_id: str,
) -> IntrospectResponse:
    response = IntrospectResponse(
        active=True,
        scope=scope,
        token_type=TOKEN_TYPE_BEARER,
        exp=int(expires_at.timestamp()),
    )

    if client_record_id:
        owner = await service.clients.find_by_id(client_record_id)
        if owner is not None:
            response.client_id = owner.client_id

    if user_id:
        user = await service.repos.users.get(user_id)
        if user is not None:
            response.username = user.email
            response.sub = user.id

    return response


async def introspect_token(
    service: OAuthService, client: OAuthApplication, form: Mapping[str, str]
) -> IntrospectResponse:
    """
    Describe the token in ``form``.

    Raises:
        TokenMissingError: If no token was given
        TokenHintInvalidError: If the hint is neither access nor refresh token
    """
    token = form.get("token", "")
    if not token:
        raise TokenMissingError()

    hint = form.get("token_type_hint") or ACCESS_TOKEN_HINT

    if hint == ACCESS_TOKEN_HINT:
        try:
            access_token = await service.tokens.authenticate(token)
        except (AccessTokenNotFoundError, AccessTokenExpiredError) as e:
            logger.debug(f"Inactive access token: {e.message}")
            return IntrospectResponse(active=False)
        return await _describe(
            service,
            access_token.scope,
            access_token.expires_at,
            access_token.client_id,
            access_token.user_id,
        )

    if hint == REFRESH_TOKEN_HINT:
        try:
            refresh_token = await service.tokens.get_valid_refresh_token(token, client)
        except (RefreshTokenNotFoundError, RefreshTokenExpiredError) as e:
            logger.debug(f"Inactive refresh token: {e.message}")
            return IntrospectResponse(active=False)
        return await _describe(
            service,
            refresh_token.scope,
            refresh_token.expires_at,
            refresh_token.client_id,
            refresh_token.user_id,
        )

    raise TokenHintInvalidError()
