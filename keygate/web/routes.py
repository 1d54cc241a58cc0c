"""
Interactive Routes.

The ``/login``, ``/signup``, ``/logout`` and ``/authorize`` pages that drive
the authorization-code and implicit flows for a browser carrying a signed
session cookie.

Author: Keygate Team
Date: 2026-10-06
"""

import logging
from pathlib import Path
from typing import Tuple

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..metrics import KeygateMetrics
from ..oauth.client import parse_redirect_uri, redirect_uri_allowed
from ..oauth.exceptions import (
    IncorrectResponseTypeError,
    InvalidRedirectUriError,
    InvalidScopeError,
    InvalidUsernameOrPasswordError,
    OAuthError,
    UserNotFoundError,
)
from ..oauth.models import ROLE_USER, TOKEN_TYPE_BEARER, OAuthApplication, User, UserSession
from ..oauth.service import OAuthService
from ..store.exceptions import StoreError
from .dependencies import (
    ErrorPage,
    LoggedInContext,
    LoginRequired,
    form_value,
    guest_session,
    logged_in,
    query_client,
)
from .redirects import (
    error_redirect,
    local_redirect_target,
    query_string,
    redirect,
    redirect_with_fragment,
    redirect_with_params,
    redirect_with_query,
    set_params,
)
from .session import SessionService

logger = logging.getLogger(__name__)

template_dir = Path(__file__).parent / "templates"
jinja_env = Environment(
    loader=FileSystemLoader(str(template_dir)),
    autoescape=select_autoescape(["html"]),
)

EMAIL_TAKEN = "Email taken"


def render_template(
    template_name: str, context: dict, status_code: int = status.HTTP_200_OK
) -> HTMLResponse:
    """Render Jinja2 template."""
    template = jinja_env.get_template(template_name)
    return HTMLResponse(content=template.render(**context), status_code=status_code)


def _same_url(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


async def error_page_handler(request: Request, exc: ErrorPage) -> HTMLResponse:
    logger.info(f"{request.method} {request.url.path} failed: {exc.message}")
    return render_template("error.html", {"error": exc.message}, exc.status_code)


async def login_required_handler(request: Request, exc: LoginRequired) -> RedirectResponse:
    return redirect_with_query("/login", exc.query)


def register_web_handlers(app: FastAPI) -> None:
    """Register the error-page and login-redirect handlers."""
    app.add_exception_handler(ErrorPage, error_page_handler)
    app.add_exception_handler(LoginRequired, login_required_handler)


def create_router(service: OAuthService, metrics: KeygateMetrics) -> APIRouter:
    """Create FastAPI router for the interactive pages.

    Returns:
        Configured APIRouter
    """
    router = APIRouter(tags=["Web"], include_in_schema=False)

    @router.get("/")
    async def index(request: Request) -> RedirectResponse:
        return redirect_with_query("/login", request.query_params.multi_items())

    # Login

    @router.get("/login")
    async def login_form(
        request: Request,
        session: SessionService = Depends(guest_session),
    ) -> HTMLResponse:
        return render_template(
            "login.html",
            {
                "error": session.pop_flash(),
                "query_string": query_string(request.query_params.multi_items()),
            },
        )

    @router.post("/login")
    async def login(
        request: Request,
        session: SessionService = Depends(guest_session),
        client: OAuthApplication = Depends(query_client),
    ) -> Response:
        form = await request.form()

        try:
            user = await service.users.auth_user(
                form_value(request, form, "email"),
                form_value(request, form, "password"),
            )
        except OAuthError as e:
            logger.info(f"Login rejected: {e.message}")
            metrics.track_login("invalid_credentials")
            session.add_flash(InvalidUsernameOrPasswordError.message)
            return redirect(_same_url(request))

        try:
            scope = await service.scopes.get_scope(form_value(request, form, "scope"))
            access_token, refresh_token = await service.tokens.login(client, user, scope)
        except OAuthError as e:
            metrics.track_login(type(e).__name__)
            session.add_flash(e.message)
            return redirect(_same_url(request))

        session.set_user_session(
            UserSession(
                client_id=client.client_id,
                user_id=user.id,
                access_token=access_token.access_token,
                refresh_token=refresh_token.token,
            )
        )
        metrics.track_login("success")
        logger.info(f"User {user.id} logged in via client '{client.client_id}'")

        target = local_redirect_target(request.query_params.get("login_redirect_uri"))
        forwarded = [
            (k, v) for k, v in request.query_params.multi_items() if k != "login_redirect_uri"
        ]
        return redirect_with_query(target, forwarded)

    # Signup

    @router.get("/signup")
    async def signup_form(
        request: Request,
        session: SessionService = Depends(guest_session),
    ) -> HTMLResponse:
        return render_template(
            "signup.html",
            {
                "error": session.pop_flash(),
                "query_string": query_string(request.query_params.multi_items()),
                "min_password_length": service.config.min_password_length,
            },
        )

    @router.post("/signup")
    async def signup(
        request: Request,
        session: SessionService = Depends(guest_session),
    ) -> RedirectResponse:
        form = await request.form()
        email = form_value(request, form, "email")

        if await service.users.user_exists(email):
            session.add_flash(EMAIL_TAKEN)
            return redirect(_same_url(request))

        try:
            await service.users.create_user(ROLE_USER, email, form_value(request, form, "password"))
        except OAuthError as e:
            session.add_flash(e.message)
            return redirect(_same_url(request))

        return redirect_with_query("/login", request.query_params.multi_items())

    # Logout

    @router.get("/logout")
    async def logout(
        request: Request,
        ctx: LoggedInContext = Depends(logged_in),
    ) -> RedirectResponse:
        await service.tokens.clear_user_tokens(ctx.user_session)
        ctx.session.clear_user_session()
        logger.info(f"User {ctx.user_session.user_id} logged out")
        return redirect_with_query("/login", request.query_params.multi_items())

    # Authorize

    async def authorize_common(
        request: Request, ctx: LoggedInContext, client: OAuthApplication, form
    ) -> Tuple[User, str, str]:
        """Resolve the user, response type and redirect URI of a consent request."""
        try:
            user = await service.users.find_by_id(ctx.user_session.user_id)
        except UserNotFoundError as e:
            raise ErrorPage(e.message)

        response_type = form_value(request, form, "response_type")
        if response_type not in ("code", "token"):
            raise ErrorPage(IncorrectResponseTypeError.message)

        redirect_uri = form_value(request, form, "redirect_uri") or client.redirect_url
        try:
            parse_redirect_uri(redirect_uri)
        except InvalidRedirectUriError as e:
            raise ErrorPage(e.message)
        if not redirect_uri_allowed(redirect_uri, client.redirect_url):
            logger.warning(
                f"Rejected redirect URI {redirect_uri!r} for client '{client.client_id}'"
            )
            raise ErrorPage(InvalidRedirectUriError.message)

        return user, response_type, redirect_uri

    @router.get("/authorize")
    async def authorize_form(
        request: Request,
        ctx: LoggedInContext = Depends(logged_in),
        client: OAuthApplication = Depends(query_client),
    ) -> HTMLResponse:
        _, response_type, _ = await authorize_common(request, ctx, client, None)

        query = set_params(request.query_params.multi_items(), login_redirect_uri=request.url.path)
        return render_template(
            "authorize.html",
            {
                "error": ctx.session.pop_flash(),
                "app_name": client.app_name or client.client_id,
                "scopes": client.scopes,
                "app_company": client.publisher_name,
                "app_url": client.website,
                "app_email": client.contact_email,
                "query_string": query_string(query),
                "token": response_type == "token",
                "lifetime": service.config.access_token_lifetime,
            },
        )

    @router.post("/authorize")
    async def authorize(
        request: Request,
        ctx: LoggedInContext = Depends(logged_in),
        client: OAuthApplication = Depends(query_client),
    ) -> RedirectResponse:
        form = await request.form()
        user, response_type, redirect_uri = await authorize_common(request, ctx, client, form)

        state = form_value(request, form, "state")

        if not form_value(request, form, "allow"):
            metrics.track_authorization(response_type, "access_denied")
            return error_redirect(redirect_uri, "access_denied", state, response_type)

        try:
            scope = await service.scopes.get_scope(form_value(request, form, "scope"))
        except InvalidScopeError:
            metrics.track_authorization(response_type, "invalid_scope")
            return error_redirect(redirect_uri, "invalid_scope", state, response_type)

        if response_type == "code":
            try:
                authorization_code = await service.tokens.grant_authorization_code(
                    client, user, service.config.auth_code_lifetime, redirect_uri, scope
                )
            except StoreError as e:
                logger.error(f"Failed to grant authorization code: {e}")
                metrics.track_authorization(response_type, "server_error")
                return error_redirect(redirect_uri, "server_error", state, response_type)

            params = [("code", authorization_code.code)]
            if state:
                params.append(("state", state))
            metrics.track_authorization(response_type, "success")
            return redirect_with_params(redirect_uri, params)

        lifetime = service.config.access_token_lifetime
        try:
            access_token = await service.tokens.grant_access_token(client, user, lifetime, scope)
        except StoreError as e:
            logger.error(f"Failed to grant implicit access token: {e}")
            metrics.track_authorization(response_type, "server_error")
            return error_redirect(redirect_uri, "server_error", state, response_type)

        params = [
            ("access_token", access_token.access_token),
            ("expires_in", str(lifetime)),
            ("token_type", TOKEN_TYPE_BEARER),
            ("scope", scope),
        ]
        if state:
            params.append(("state", state))
        metrics.track_authorization(response_type, "success")
        return redirect_with_fragment(redirect_uri, params)

    return router
