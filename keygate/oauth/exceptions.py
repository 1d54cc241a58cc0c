"""
OAuth 2.0 exceptions for Keygate.

Each error kind carries the public message returned in the ``{"error": ...}``
body and the HTTP status it maps to. Internal authentication failures
(unknown client, wrong password, ...) are collapsed into uniform public errors
by the callers that cross a module boundary.

Author: Keygate Team
Date: 2026-10-04
"""

from typing import Dict, Optional


class OAuthError(Exception):
    """Base exception for OAuth errors."""

    message: str = "oauth error"
    status_code: int = 400

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        """Extra response headers, if any."""
        return None


# Grant dispatch

class InvalidGrantTypeError(OAuthError):
    message = "invalid grant type"


class InvalidClientIdOrSecretError(OAuthError):
    message = "invalid client ID or secret"
    status_code = 401

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer realm=oauth2_server"}


class InvalidUsernameOrPasswordError(OAuthError):
    message = "invalid username or password"
    status_code = 401


# Tokens

class AccessTokenNotFoundError(OAuthError):
    message = "access token not found"
    status_code = 401


class AccessTokenExpiredError(OAuthError):
    message = "access token expired"
    status_code = 401


class RefreshTokenNotFoundError(OAuthError):
    message = "refresh token not found"


class RefreshTokenExpiredError(OAuthError):
    message = "refresh token expired"
    status_code = 401


class RequestedScopeCannotBeGreaterError(OAuthError):
    message = "requested scope cannot be greater"


class AuthorizationCodeNotFoundError(OAuthError):
    message = "authorization code not found"


class AuthorizationCodeExpiredError(OAuthError):
    message = "authorization code expired"


class InvalidRedirectUriError(OAuthError):
    message = "invalid redirect URI"


class InvalidScopeError(OAuthError):
    message = "invalid scope"


# Introspection

class TokenMissingError(OAuthError):
    message = "token missing"


class TokenHintInvalidError(OAuthError):
    message = "invalid token hint"


# Interactive flow

class IncorrectResponseTypeError(OAuthError):
    message = "response type not one of token or code"


# Client and user administration

class ClientNotFoundError(OAuthError):
    message = "client not found"


class InvalidClientSecretError(OAuthError):
    message = "invalid client secret"
    status_code = 401


class ClientIdTakenError(OAuthError):
    message = "client ID taken"


class UserNotFoundError(OAuthError):
    message = "user not found"


class InvalidUserPasswordError(OAuthError):
    message = "invalid user password"
    status_code = 401


class UserPasswordNotSetError(OAuthError):
    message = "user password not set"
    status_code = 401


class RoleNotAllowedError(InvalidUsernameOrPasswordError):
    """Surfaces as the uniform credential error so roles cannot be probed."""


class PasswordTooShortError(OAuthError):
    def __init__(self, min_length: int = 6):
        super().__init__(f"password must be at least {min_length} characters long")
        self.min_length = min_length


class UsernameTakenError(OAuthError):
    message = "username taken"


class CannotSetEmptyUsernameError(OAuthError):
    message = "cannot set empty username"
