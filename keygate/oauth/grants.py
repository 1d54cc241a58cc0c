"""
Grant handlers for the token endpoint.

Each handler receives the authenticated client and the parsed form and
returns the access token response.

Author: Keygate Team
Date: 2026-10-05
"""

import logging
from typing import Awaitable, Callable, Dict, Mapping, Optional

from .exceptions import (
    InvalidUsernameOrPasswordError,
    OAuthError,
    RequestedScopeCannotBeGreaterError,
)
from .models import (
    TOKEN_TYPE_BEARER,
    AccessToken,
    AccessTokenResponse,
    OAuthApplication,
    RefreshToken,
    User,
)
from .scope import scope_not_greater
from .service import OAuthService

logger = logging.getLogger(__name__)

GrantHandler = Callable[
    [OAuthService, OAuthApplication, Mapping[str, str]], Awaitable[AccessTokenResponse]
]


def new_access_token_response(
    access_token: AccessToken,
    refresh_token: Optional[RefreshToken],
    lifetime: int,
) -> AccessTokenResponse:
    return AccessTokenResponse(
        access_token=access_token.access_token,
        token_type=TOKEN_TYPE_BEARER,
        expires_in=lifetime,
        refresh_token=refresh_token.token if refresh_token is not None else None,
        scope=access_token.scope,
    )


async def _find_user(service: OAuthService, user_id: str) -> Optional[User]:
    if not user_id:
        return None
    return await service.users.find_by_id(user_id)


async def authorization_code_grant(
    service: OAuthService, client: OAuthApplication, form: Mapping[str, str]
) -> AccessTokenResponse:
    """Redeem an authorization code. The code is deleted before tokens are minted."""
    authorization_code = await service.tokens.consume_authorization_code(
        form.get("code", ""),
        form.get("redirect_uri", ""),
        client,
    )
    user = await _find_user(service, authorization_code.user_id)
    access_token, refresh_token = await service.tokens.login(
        client, user, authorization_code.scope
    )
    return new_access_token_response(
        access_token, refresh_token, service.config.access_token_lifetime
    )


async def password_grant(
    service: OAuthService, client: OAuthApplication, form: Mapping[str, str]
) -> AccessTokenResponse:
    try:
        user = await service.users.auth_user(form.get("username", ""), form.get("password", ""))
    except OAuthError as e:
        logger.info(f"Password grant rejected for client '{client.client_id}': {e.message}")
        raise InvalidUsernameOrPasswordError()

    scope = await service.scopes.get_scope(form.get("scope", ""))
    access_token, refresh_token = await service.tokens.login(client, user, scope)
    return new_access_token_response(
        access_token, refresh_token, service.config.access_token_lifetime
    )


async def client_credentials_grant(
    service: OAuthService, client: OAuthApplication, form: Mapping[str, str]
) -> AccessTokenResponse:
    """Issue an access token to the client itself, without a refresh token."""
    scope = await service.scopes.get_scope(form.get("scope", ""))
    access_token = await service.tokens.grant_access_token(
        client, None, service.config.access_token_lifetime, scope
    )
    return new_access_token_response(access_token, None, service.config.access_token_lifetime)


async def get_refresh_token_scope(
    service: OAuthService, refresh_token: RefreshToken, requested: str
) -> str:
    """
    Scope for a refresh grant: the originally granted scope, or the
    requested one if it is a subset of it.

    Raises:
        InvalidScopeError: If the requested scope is not in the catalog
        RequestedScopeCannotBeGreaterError: If it exceeds the granted scope
    """
    scope = refresh_token.scope
    if requested:
        scope = await service.scopes.get_scope(requested)

    if not scope_not_greater(scope, refresh_token.scope):
        raise RequestedScopeCannotBeGreaterError()
    return scope


async def refresh_token_grant(
    service: OAuthService, client: OAuthApplication, form: Mapping[str, str]
) -> AccessTokenResponse:
    refresh_token = await service.tokens.get_valid_refresh_token(
        form.get("refresh_token", ""), client
    )
    scope = await get_refresh_token_scope(service, refresh_token, form.get("scope", ""))
    user = await _find_user(service, refresh_token.user_id)
    access_token, new_refresh_token = await service.tokens.login(client, user, scope)
    return new_access_token_response(
        access_token, new_refresh_token, service.config.access_token_lifetime
    )


GRANT_TYPES: Dict[str, GrantHandler] = {
    "authorization_code": authorization_code_grant,
    "password": password_grant,
    "client_credentials": client_credentials_grant,
    "refresh_token": refresh_token_grant,
}
