"""
OAuth 2.0 core: entities, errors, credential lifecycle and grant handling.

Service modules import the record store's repositories, which in turn import
the models below, so only models and exceptions are re-exported here.

Author: Keygate Team
Date: 2026-10-04
"""

from .models import (
    ROLE_SUPERUSER,
    ROLE_USER,
    AccessToken,
    AccessTokenResponse,
    AuthorizationCode,
    IntrospectResponse,
    OAuthApplication,
    RefreshToken,
    Scope,
    User,
    UserSession,
)
from .exceptions import OAuthError

__all__ = [
    "ROLE_USER",
    "ROLE_SUPERUSER",
    "OAuthApplication",
    "User",
    "Scope",
    "AuthorizationCode",
    "AccessToken",
    "RefreshToken",
    "UserSession",
    "AccessTokenResponse",
    "IntrospectResponse",
    "OAuthError",
]
