"""
Client authenticator.

Client ids are case-insensitive and stored lowercase; secrets are stored as
bcrypt hashes.

Author: Keygate Team
Date: 2026-10-04
"""

import logging
from typing import List, Optional
from urllib.parse import urlsplit

from ..store.repositories import Repositories
from .exceptions import (
    ClientIdTakenError,
    ClientNotFoundError,
    InvalidClientSecretError,
    InvalidRedirectUriError,
)
from .models import OAuthApplication
from .secrets import Clock, PasswordHasher, SecretFactory

logger = logging.getLogger(__name__)


def parse_redirect_uri(value: str) -> str:
    """
    Validate that ``value`` is an absolute URI.

    Raises:
        InvalidRedirectUriError: If it has no scheme or host
    """
    try:
        parts = urlsplit(value)
    except ValueError:
        raise InvalidRedirectUriError()
    if not parts.scheme or not parts.netloc:
        raise InvalidRedirectUriError()
    return value


def redirect_uri_allowed(redirect_uri: str, registered: str) -> bool:
    """
    True if ``redirect_uri`` is the registered URI or lives beneath it.

    Scheme and host must match exactly (host ignoring case) and the path must
    equal the registered path or extend it by whole segments.
    """
    if not registered:
        return False
    if redirect_uri == registered:
        return True
    try:
        given, known = urlsplit(redirect_uri), urlsplit(registered)
    except ValueError:
        return False
    if given.scheme.lower() != known.scheme.lower():
        return False
    if given.netloc.lower() != known.netloc.lower():
        return False
    if given.username or given.password:
        return False
    base = known.path.rstrip("/")
    return given.path == known.path or given.path.startswith(base + "/")


class ClientService:
    """Lookup, authentication and administration of client applications."""

    def __init__(
        self,
        repositories: Repositories,
        hasher: PasswordHasher,
        secret_factory: SecretFactory,
        clock: Clock,
    ):
        self.repos = repositories
        self.hasher = hasher
        self.secret_factory = secret_factory
        self.clock = clock

    async def find_by_client_id(self, client_id: str) -> OAuthApplication:
        """
        Look up a client by its public id, ignoring case.

        Raises:
            ClientNotFoundError: If no such client exists
        """
        client = await self.repos.clients.find_one({"client_id": client_id.lower()})
        if client is None:
            raise ClientNotFoundError()
        return client

    async def find_by_id(self, record_id: str) -> Optional[OAuthApplication]:
        return await self.repos.clients.get(record_id)

    async def client_exists(self, client_id: str) -> bool:
        try:
            await self.find_by_client_id(client_id)
        except ClientNotFoundError:
            return False
        return True

    async def auth_client(self, client_id: str, secret: str) -> OAuthApplication:
        """
        Authenticate a client by id and secret.

        Raises:
            ClientNotFoundError: If the client is unknown
            InvalidClientSecretError: If the secret does not match
        """
        client = await self.find_by_client_id(client_id)
        if not await self.hasher.verify_async(secret, client.client_secret):
            raise InvalidClientSecretError()
        return client

    async def create_client(
        self,
        client_id: str,
        secret: str,
        redirect_url: str,
        app_name: Optional[str] = None,
        scopes: Optional[List[str]] = None,
    ) -> OAuthApplication:
        """
        Register a new client.

        Raises:
            InvalidRedirectUriError: If ``redirect_url`` is not an absolute URI
            ClientIdTakenError: If the client id is already registered
        """
        parse_redirect_uri(redirect_url)
        client_secret = await self.hasher.hash_async(secret)

        async with self.repos.store.lock(f"client:{client_id.lower()}"):
            if await self.client_exists(client_id):
                raise ClientIdTakenError()

            client = OAuthApplication(
                id=self.secret_factory.new_id(),
                client_id=client_id.lower(),
                client_secret=client_secret,
                redirect_url=redirect_url,
                app_name=app_name,
                scopes=scopes or [],
                created_at=self.clock(),
            )
            client = await self.repos.clients.insert(client)
        logger.info(f"Created client '{client.client_id}'")
        return client

    async def delete_client(self, client_id: str) -> None:
        """
        Delete a client together with every token and code issued to it.

        Raises:
            ClientNotFoundError: If no such client exists
        """
        client = await self.find_by_client_id(client_id)
        by_client = {"client_id": client.id}
        access = await self.repos.access_tokens.delete_by_filter(by_client)
        refresh = await self.repos.refresh_tokens.delete_by_filter(by_client)
        codes = await self.repos.authorization_codes.delete_by_filter(by_client)
        await self.repos.clients.delete_by_id(client.id)
        logger.info(
            f"Deleted client '{client.client_id}' "
            f"({access} access tokens, {refresh} refresh tokens, {codes} codes)"
        )
