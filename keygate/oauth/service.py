"""
OAuth service.

Wires the scope, client, user and token services over one record store and
seeds configured records at startup.

Author: Keygate Team
Date: 2026-10-05
"""

import logging
from typing import Optional

from ..core.config_manager import BootstrapConfig, OAuthConfig
from ..store.backend import RecordStore
from ..store.repositories import Repositories
from .client import ClientService
from .exceptions import OAuthError
from .scope import ScopeService
from .secrets import Clock, PasswordHasher, SecretFactory, utc_now
from .tokens import TokenService
from .user import UserService

logger = logging.getLogger(__name__)


class OAuthService:
    """
    Entry point to the authorization server's business logic.

    Attributes:
        scopes: Scope catalog and scope arithmetic
        clients: Client lookup and authentication
        users: User lookup and authentication
        tokens: Token and authorization code lifecycle
    """

    def __init__(
        self,
        store: RecordStore,
        config: Optional[OAuthConfig] = None,
        secret_factory: Optional[SecretFactory] = None,
        clock: Optional[Clock] = None,
        hasher: Optional[PasswordHasher] = None,
    ):
        self.config = config or OAuthConfig()
        self.store = store
        self.repos = Repositories(store)
        self.secret_factory = secret_factory or SecretFactory()
        self.clock = clock or utc_now
        self.hasher = hasher or PasswordHasher(rounds=self.config.password_hash_rounds)

        self.scopes = ScopeService(self.repos.scopes)
        self.clients = ClientService(self.repos, self.hasher, self.secret_factory, self.clock)
        self.users = UserService(
            self.repos,
            self.hasher,
            self.secret_factory,
            self.clock,
            min_password_length=self.config.min_password_length,
        )
        self.tokens = TokenService(
            self.repos,
            self.secret_factory,
            self.clock,
            access_token_lifetime=self.config.access_token_lifetime,
            refresh_token_lifetime=self.config.refresh_token_lifetime,
            auth_code_lifetime=self.config.auth_code_lifetime,
            allowed_roles=self.config.allowed_roles,
        )

    async def bootstrap(self, bootstrap: BootstrapConfig) -> None:
        """Create configured scopes, clients and users that do not exist yet."""
        for scope in bootstrap.scopes:
            await self.scopes.create_scope(
                scope.scope,
                is_default=scope.is_default,
                description=scope.description,
                record_id=self.secret_factory.new_id(),
            )

        for client in bootstrap.clients:
            if await self.clients.client_exists(client.client_id):
                continue
            await self.clients.create_client(
                client.client_id,
                client.client_secret,
                client.redirect_url,
                app_name=client.app_name,
            )

        for user in bootstrap.users:
            if await self.users.user_exists(user.email):
                continue
            try:
                await self.users.create_user(user.role, user.email, user.password)
            except OAuthError as e:
                logger.error(f"Skipping bootstrap user: {e.message}")

        logger.info(
            f"Bootstrap complete: {len(bootstrap.scopes)} scopes, "
            f"{len(bootstrap.clients)} clients, {len(bootstrap.users)} users"
        )
