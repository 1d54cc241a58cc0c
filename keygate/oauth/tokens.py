"""
Token lifecycle engine.

Issues access tokens, issues or reuses refresh tokens, grants and consumes
authorization codes, validates tokens and slides refresh-token expiry
forward on authenticated access.

Tokens and codes reference clients and users by record id. A token issued
without a user (client credentials) has an empty ``user_id``.

Author: Keygate Team
Date: 2026-10-05
"""

import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from ..store.repositories import Repositories
from .exceptions import (
    AccessTokenExpiredError,
    AccessTokenNotFoundError,
    AuthorizationCodeExpiredError,
    AuthorizationCodeNotFoundError,
    InvalidRedirectUriError,
    RefreshTokenExpiredError,
    RefreshTokenNotFoundError,
    RoleNotAllowedError,
)
from .models import (
    AccessToken,
    AuthorizationCode,
    OAuthApplication,
    RefreshToken,
    User,
    UserSession,
)
from .secrets import Clock, SecretFactory, constant_time_equals
from .user import is_role_allowed

logger = logging.getLogger(__name__)


def _user_id(user: Optional[User]) -> str:
    return user.id if user is not None else ""


class TokenService:
    """Issues, validates and revokes opaque tokens and authorization codes."""

    def __init__(
        self,
        repositories: Repositories,
        secret_factory: SecretFactory,
        clock: Clock,
        access_token_lifetime: int = 3600,
        refresh_token_lifetime: int = 15_552_000,
        auth_code_lifetime: int = 600,
        allowed_roles: Optional[List[str]] = None,
    ):
        self.repos = repositories
        self.secret_factory = secret_factory
        self.clock = clock
        self.access_token_lifetime = access_token_lifetime
        self.refresh_token_lifetime = refresh_token_lifetime
        self.auth_code_lifetime = auth_code_lifetime
        self.allowed_roles = allowed_roles

    # Access tokens

    async def grant_access_token(
        self,
        client: OAuthApplication,
        user: Optional[User],
        expires_in: int,
        scope: str,
    ) -> AccessToken:
        """Purge the principal's expired access tokens and issue a new one."""
        now = self.clock()

        expired = {"client_id": client.id, "expires_at": {"$lte": now}}
        if user is not None:
            expired["user_id"] = user.id
        purged = await self.repos.access_tokens.delete_by_filter(expired)
        if purged:
            logger.debug(f"Purged {purged} expired access tokens for client {client.id}")

        token = AccessToken(
            id=self.secret_factory.new_id(),
            access_token=self.secret_factory.new_token(),
            client_id=client.id,
            user_id=_user_id(user),
            scope=scope,
            expires_at=now + timedelta(seconds=expires_in),
            created_at=now,
        )
        return await self.repos.access_tokens.insert(token)

    async def validate_access_token(self, token: str) -> AccessToken:
        """
        Check an access token without side effects.

        Raises:
            AccessTokenNotFoundError: If the token is unknown
            AccessTokenExpiredError: If the token has expired
        """
        access_token = await self.repos.access_tokens.find_one({"access_token": token})
        if access_token is None or not constant_time_equals(access_token.access_token, token):
            raise AccessTokenNotFoundError()
        if self.clock() > access_token.expires_at:
            raise AccessTokenExpiredError()
        return access_token

    async def touch_refresh_token(self, access_token: AccessToken) -> Optional[RefreshToken]:
        """
        Extend the expiry of the refresh token paired with ``access_token``.

        Refresh tokens that have already expired are left alone.
        """
        refresh_token = await self.repos.refresh_tokens.find_one(
            {"client_id": access_token.client_id, "user_id": access_token.user_id}
        )
        if refresh_token is None:
            return None
        if self.clock() > refresh_token.expires_at:
            logger.debug(f"Not extending expired refresh token {refresh_token.id}")
            return refresh_token

        refresh_token.expires_at = refresh_token.expires_at + timedelta(
            seconds=self.refresh_token_lifetime
        )
        return await self.repos.refresh_tokens.update(refresh_token)

    async def authenticate(self, token: str) -> AccessToken:
        """Validate an access token and slide its refresh token forward."""
        access_token = await self.validate_access_token(token)
        await self.touch_refresh_token(access_token)
        return access_token

    # Refresh tokens

    async def get_or_create_refresh_token(
        self,
        client: OAuthApplication,
        user: Optional[User],
        expires_in: int,
        scope: str,
    ) -> RefreshToken:
        """
        Return the live refresh token for (client, user), creating one if
        there is none or the existing one has expired.
        """
        user_id = _user_id(user)
        async with self.repos.store.lock(f"refresh:{client.id}:{user_id}"):
            now = self.clock()
            existing = await self.repos.refresh_tokens.find_one(
                {"client_id": client.id, "user_id": user_id}
            )

            if existing is not None and now > existing.expires_at:
                await self.repos.refresh_tokens.delete_by_id(existing.id)
                existing = None

            if existing is not None:
                return existing

            refresh_token = RefreshToken(
                id=self.secret_factory.new_id(),
                token=self.secret_factory.new_token(),
                client_id=client.id,
                user_id=user_id,
                scope=scope,
                expires_at=now + timedelta(seconds=expires_in),
                created_at=now,
            )
            return await self.repos.refresh_tokens.insert(refresh_token)

    async def get_valid_refresh_token(self, token: str, client: OAuthApplication) -> RefreshToken:
        """
        Raises:
            RefreshTokenNotFoundError: If ``client`` holds no such token
            RefreshTokenExpiredError: If the token has expired
        """
        refresh_token = await self.repos.refresh_tokens.find_one(
            {"client_id": client.id, "token": token}
        )
        if refresh_token is None or not constant_time_equals(refresh_token.token, token):
            raise RefreshTokenNotFoundError()
        if self.clock() > refresh_token.expires_at:
            raise RefreshTokenExpiredError()
        return refresh_token

    # Authorization codes

    async def grant_authorization_code(
        self,
        client: OAuthApplication,
        user: User,
        expires_in: int,
        redirect_uri: str,
        scope: str,
    ) -> AuthorizationCode:
        """Issue a single-use code, sweeping the client's expired codes first."""
        now = self.clock()
        await self.repos.authorization_codes.delete_by_filter(
            {"client_id": client.id, "expires_at": {"$lt": now}}
        )

        code = AuthorizationCode(
            id=self.secret_factory.new_id(),
            code=self.secret_factory.new_token(),
            client_id=client.id,
            user_id=user.id,
            redirect_url=redirect_uri,
            scope=scope,
            expires_at=now + timedelta(seconds=expires_in),
            created_at=now,
        )
        return await self.repos.authorization_codes.insert(code)

    async def get_valid_authorization_code(
        self, code: str, redirect_uri: str, client: OAuthApplication
    ) -> AuthorizationCode:
        """
        Raises:
            AuthorizationCodeNotFoundError: If ``client`` holds no such code
            InvalidRedirectUriError: If ``redirect_uri`` differs from the one
                the code was issued for
            AuthorizationCodeExpiredError: If the code has expired
        """
        authorization_code = await self.repos.authorization_codes.find_one(
            {"client_id": client.id, "code": code}
        )
        if authorization_code is None or not constant_time_equals(authorization_code.code, code):
            raise AuthorizationCodeNotFoundError()
        if redirect_uri != authorization_code.redirect_url:
            raise InvalidRedirectUriError()
        if self.clock() > authorization_code.expires_at:
            raise AuthorizationCodeExpiredError()
        return authorization_code

    async def consume_authorization_code(
        self, code: str, redirect_uri: str, client: OAuthApplication
    ) -> AuthorizationCode:
        """
        Validate a code and delete it. Only one concurrent caller wins.

        Raises:
            AuthorizationCodeNotFoundError: If the code is unknown or another
                request redeemed it first
        """
        authorization_code = await self.get_valid_authorization_code(code, redirect_uri, client)
        if not await self.repos.authorization_codes.delete_by_id(authorization_code.id):
            logger.warning(f"Authorization code {authorization_code.id} was already redeemed")
            raise AuthorizationCodeNotFoundError()
        return authorization_code

    # Sessions

    async def login(
        self,
        client: OAuthApplication,
        user: Optional[User],
        scope: str,
    ) -> Tuple[AccessToken, RefreshToken]:
        """
        Issue an access token and get or create the refresh token.

        Raises:
            RoleNotAllowedError: If role gating is on and the user has none
                of the allowed roles
        """
        if user is not None and self.allowed_roles and not is_role_allowed(
            user.roles, self.allowed_roles
        ):
            raise RoleNotAllowedError()

        access_token = await self.grant_access_token(
            client, user, self.access_token_lifetime, scope
        )
        refresh_token = await self.get_or_create_refresh_token(
            client, user, self.refresh_token_lifetime, scope
        )
        return access_token, refresh_token

    async def clear_user_tokens(self, session: UserSession) -> None:
        """Delete the refresh and access tokens of the session's principal."""
        refresh_token = await self.repos.refresh_tokens.find_one(
            {"token": session.refresh_token}
        )
        if refresh_token is not None:
            await self.repos.refresh_tokens.delete_by_filter(
                {"client_id": refresh_token.client_id, "user_id": refresh_token.user_id}
            )

        access_token = await self.repos.access_tokens.find_one(
            {"access_token": session.access_token}
        )
        if access_token is not None:
            await self.repos.access_tokens.delete_by_filter(
                {"client_id": access_token.client_id, "user_id": access_token.user_id}
            )
