"""
Request dependencies for the interactive pages.

Each dependency resolves one typed piece of request context (the session, the
client named in the query string, the logged-in user session) or raises an
exception that the web handlers turn into an error page or a login redirect.

Author: Keygate Team
Date: 2026-10-06
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

from fastapi import Depends, Request, status

from ..oauth.exceptions import (
    AccessTokenExpiredError,
    AccessTokenNotFoundError,
    ClientNotFoundError,
    OAuthError,
)
from ..oauth.models import OAuthApplication, UserSession
from ..oauth.service import OAuthService
from .redirects import set_params
from .session import SessionNotStartedError, SessionService

logger = logging.getLogger(__name__)


class ErrorPage(Exception):
    """Render the error page with ``message`` and ``status_code``."""

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class LoginRequired(Exception):
    """Send the browser to ``/login``, remembering where it was going."""

    def __init__(self, query: List[Tuple[str, str]]):
        super().__init__("login required")
        self.query = query


@dataclass
class LoggedInContext:
    """A request made with a valid, re-authenticated user session."""

    session: SessionService
    user_session: UserSession


def get_oauth_service(request: Request) -> OAuthService:
    return request.app.state.oauth_service


def form_value(request: Request, form, name: str) -> str:
    """Read ``name`` from the form body, falling back to the query string."""
    value = form.get(name) if form is not None else None
    if isinstance(value, str) and value:
        return value
    return request.query_params.get(name, "")


async def guest_session(request: Request) -> SessionService:
    session = SessionService(request)
    try:
        session.start_session()
    except SessionNotStartedError as e:
        raise ErrorPage(e.message, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return session


async def query_client(
    request: Request,
    service: OAuthService = Depends(get_oauth_service),
) -> OAuthApplication:
    """The client named by the ``client_id`` query parameter."""
    try:
        return await service.clients.find_by_client_id(request.query_params.get("client_id", ""))
    except ClientNotFoundError as e:
        raise ErrorPage(e.message)


async def _reauthenticate(service: OAuthService, user_session: UserSession) -> None:
    """
    Validate the session's access token, refreshing the pair if it expired.

    Raises:
        OAuthError: If neither token can be used
    """
    try:
        access_token = await service.tokens.validate_access_token(user_session.access_token)
    except (AccessTokenNotFoundError, AccessTokenExpiredError):
        pass
    else:
        await service.tokens.touch_refresh_token(access_token)
        return

    client = await service.clients.find_by_client_id(user_session.client_id)
    refresh_token = await service.tokens.get_valid_refresh_token(
        user_session.refresh_token, client
    )
    user = await service.users.find_by_id(refresh_token.user_id)
    access_token, refresh_token = await service.tokens.login(client, user, refresh_token.scope)

    user_session.access_token = access_token.access_token
    user_session.refresh_token = refresh_token.token
    logger.info(f"Refreshed session tokens for user {user.id}")


async def logged_in(
    request: Request,
    session: SessionService = Depends(guest_session),
    service: OAuthService = Depends(get_oauth_service),
) -> LoggedInContext:
    """Require a logged-in session, re-authenticating it on every request."""
    login_query = set_params(request.query_params.multi_items(), login_redirect_uri=request.url.path)

    user_session = session.get_user_session()
    if user_session is None:
        raise LoginRequired(login_query)

    try:
        await _reauthenticate(service, user_session)
    except OAuthError as e:
        logger.info(f"Session re-authentication failed: {e.message}")
        raise LoginRequired(login_query)

    session.set_user_session(user_session)
    return LoggedInContext(session=session, user_session=user_session)
