"""
OAuth Models.

Pydantic models for the records Keygate persists (clients, users, scopes,
tokens, authorization codes), the cookie-borne user session and the JSON
responses of the token and introspection endpoints.

Author: Keygate Team
Date: 2026-10-04
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

ROLE_USER = "user"
ROLE_SUPERUSER = "superuser"

TOKEN_TYPE_BEARER = "Bearer"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class OAuthApplication(BaseModel):
    """A registered client application.

    Attributes:
        id: Record id, referenced by tokens and codes
        client_id: Public client identifier (stored lowercase)
        client_secret: bcrypt hash of the client secret
        redirect_url: Default redirect URI for interactive flows
        scopes: Scopes shown on the consent page
    """

    id: str
    client_id: str
    client_secret: str
    redirect_url: str = ""
    app_name: Optional[str] = None
    scopes: List[str] = Field(default_factory=list)
    publisher_name: Optional[str] = None
    website: Optional[str] = None
    contact_email: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class User(BaseModel):
    """An end user. An empty ``password`` means password login is impossible."""

    id: str
    email: str
    password: str = ""
    roles: List[str] = Field(default_factory=lambda: [ROLE_USER])
    created_at: datetime = Field(default_factory=_utcnow)


class Scope(BaseModel):
    """Entry of the scope catalog."""

    id: str
    scope: str
    is_default: bool = False
    description: Optional[str] = None


class AuthorizationCode(BaseModel):
    """Single-use code issued on consent and redeemed at the token endpoint.

    ``client_id`` and ``user_id`` hold record ids, not public identifiers.
    """

    id: str
    code: str
    client_id: str
    user_id: str
    redirect_url: str = ""
    scope: str = ""
    expires_at: datetime
    created_at: datetime = Field(default_factory=_utcnow)


class AccessToken(BaseModel):
    """Opaque bearer token. ``user_id`` is empty for client credentials."""

    id: str
    access_token: str
    client_id: str
    user_id: str = ""
    scope: str = ""
    expires_at: datetime
    created_at: datetime = Field(default_factory=_utcnow)


class RefreshToken(BaseModel):
    """Long-lived token, at most one live per (client, user) pair."""

    id: str
    token: str
    client_id: str
    user_id: str = ""
    scope: str = ""
    expires_at: datetime
    created_at: datetime = Field(default_factory=_utcnow)


class UserSession(BaseModel):
    """Logged-in state carried in the signed session cookie.

    ``client_id`` is the public client identifier; ``user_id`` is the user's
    record id.
    """

    client_id: str
    user_id: str
    access_token: str
    refresh_token: str


class AccessTokenResponse(BaseModel):
    """Token endpoint response body."""

    access_token: str
    token_type: str = TOKEN_TYPE_BEARER
    expires_in: int
    refresh_token: Optional[str] = None
    scope: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "access_token": "00ccd40e-72ca-4e79-a4b6-67c95e2e3f1c",
                "token_type": "Bearer",
                "expires_in": 3600,
                "refresh_token": "6fd8d272-375a-4d8a-8d0f-43367dc8b791",
                "scope": "read write",
            }
        }
    )


class IntrospectResponse(BaseModel):
    """Introspection response body (RFC 7662)."""

    active: bool
    scope: Optional[str] = None
    client_id: Optional[str] = None
    username: Optional[str] = None
    token_type: Optional[str] = None
    exp: Optional[int] = None
    sub: Optional[str] = None
