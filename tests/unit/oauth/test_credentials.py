"""
Tests for credential primitives and the client and user authenticators.

Author: Keygate Team
Date: 2026-10-08
"""

import asyncio

import pytest

from keygate.oauth.client import redirect_uri_allowed
from keygate.oauth.exceptions import (
    CannotSetEmptyUsernameError,
    ClientIdTakenError,
    ClientNotFoundError,
    InvalidClientSecretError,
    InvalidRedirectUriError,
    InvalidUserPasswordError,
    PasswordTooShortError,
    UsernameTakenError,
    UserNotFoundError,
    UserPasswordNotSetError,
)
from keygate.oauth.models import ROLE_SUPERUSER, ROLE_USER, User
from keygate.oauth.secrets import PasswordHasher, SecretFactory, constant_time_equals
from keygate.oauth.user import is_role_allowed

from conftest import CLIENT_ID, CLIENT_SECRET, USER_EMAIL, USER_PASSWORD


class TestSecrets:
    """Test token generation and hashing."""

    def test_tokens_are_unique_and_url_safe(self):
        factory = SecretFactory()
        tokens = {factory.new_token() for _ in range(100)}

        assert len(tokens) == 100
        assert all(len(t) >= 43 and "+" not in t and "/" not in t for t in tokens)

    def test_constant_time_equals(self):
        assert constant_time_equals("abc", "abc")
        assert not constant_time_equals("abc", "abd")
        assert not constant_time_equals("abc", "ab")

    def test_hasher(self):
        hasher = PasswordHasher(rounds=4)
        hashed = hasher.hash("hunter22")

        assert hashed != "hunter22"
        assert hasher.verify("hunter22", hashed)
        assert not hasher.verify("hunter23", hashed)
        assert not hasher.verify("hunter22", "")
        assert not hasher.verify("hunter22", "not-a-bcrypt-hash")


class TestClientService:
    """Test client lookup and authentication."""

    async def test_auth_client(self, service):
        client = await service.clients.auth_client(CLIENT_ID, CLIENT_SECRET)

        assert client.client_id == CLIENT_ID
        assert client.client_secret != CLIENT_SECRET

    async def test_client_id_is_case_insensitive(self, service):
        assert (await service.clients.find_by_client_id("ACME")).client_id == CLIENT_ID

    async def test_auth_client_wrong_secret(self, service):
        with pytest.raises(InvalidClientSecretError):
            await service.clients.auth_client(CLIENT_ID, "wrong")

    async def test_auth_client_unknown(self, service):
        with pytest.raises(ClientNotFoundError):
            await service.clients.auth_client("nobody", CLIENT_SECRET)

    async def test_client_exists(self, service):
        assert await service.clients.client_exists(CLIENT_ID)
        assert not await service.clients.client_exists("nobody")

    async def test_create_client_taken(self, service):
        with pytest.raises(ClientIdTakenError):
            await service.clients.create_client("Acme", "x", "https://acme.example/cb")

    @pytest.mark.parametrize("redirect_url", ["not a uri", "", "/cb", "acme.example/cb"])
    async def test_create_client_rejects_relative_redirect(self, service, redirect_url):
        with pytest.raises(InvalidRedirectUriError):
            await service.clients.create_client("beta", "secret1", redirect_url)

        assert not await service.clients.client_exists("beta")

    async def test_concurrent_create_client(self, service):
        results = await asyncio.gather(
            service.clients.create_client("beta", "secret1", "https://beta.example/cb"),
            service.clients.create_client("BETA", "secret2", "https://beta.example/cb"),
            return_exceptions=True,
        )

        assert sum(isinstance(r, ClientIdTakenError) for r in results) == 1
        assert await service.repos.clients.count({"client_id": "beta"}) == 1

    @pytest.mark.parametrize(
        "redirect_uri, allowed",
        [
            ("https://acme.example/cb", True),
            ("https://ACME.example/cb", True),
            ("https://acme.example/cb/mobile", True),
            ("https://acme.example/cb?tenant=1", True),
            ("https://acme.example/cbx", False),
            ("https://acme.example/", False),
            ("http://acme.example/cb", False),
            ("https://acme.example:8443/cb", False),
            ("https://evil.example/cb", False),
            ("https://acme.example@evil.example/cb", False),
        ],
    )
    def test_redirect_uri_allowed(self, redirect_uri, allowed):
        assert redirect_uri_allowed(redirect_uri, "https://acme.example/cb") is allowed

    def test_redirect_uri_allowed_without_registration(self):
        assert not redirect_uri_allowed("https://acme.example/cb", "")

    async def test_delete_client_cascades(self, service, acme, alice):
        await service.tokens.login(acme, alice, "read")
        await service.tokens.grant_authorization_code(
            acme, alice, 600, "https://acme.example/cb", "read"
        )

        await service.clients.delete_client(CLIENT_ID)

        assert not await service.clients.client_exists(CLIENT_ID)
        assert await service.repos.access_tokens.count({"client_id": acme.id}) == 0
        assert await service.repos.refresh_tokens.count({"client_id": acme.id}) == 0
        assert await service.repos.authorization_codes.count({"client_id": acme.id}) == 0


class TestUserService:
    """Test user lookup, authentication and administration."""

    async def test_auth_user(self, service):
        user = await service.users.auth_user("Alice@Example.com", USER_PASSWORD)

        assert user.email == USER_EMAIL
        assert user.roles == [ROLE_USER]

    async def test_auth_user_wrong_password(self, service):
        with pytest.raises(InvalidUserPasswordError):
            await service.users.auth_user(USER_EMAIL, "wrong")

    async def test_auth_user_unknown(self, service):
        with pytest.raises(UserNotFoundError):
            await service.users.auth_user("bob@example.com", USER_PASSWORD)

    async def test_user_without_password_cannot_log_in(self, service):
        await service.users.create_user(ROLE_USER, "sso@example.com")

        with pytest.raises(UserPasswordNotSetError):
            await service.users.auth_user("sso@example.com", "")

    async def test_create_user_validation(self, service):
        with pytest.raises(CannotSetEmptyUsernameError):
            await service.users.create_user(ROLE_USER, "", "hunter22")
        with pytest.raises(PasswordTooShortError) as exc_info:
            await service.users.create_user(ROLE_USER, "bob@example.com", "short")
        assert exc_info.value.message == "password must be at least 6 characters long"
        with pytest.raises(UsernameTakenError):
            await service.users.create_user(ROLE_USER, "ALICE@example.com", "hunter22")

    async def test_concurrent_signup_same_email(self, service):
        """Test that racing signups for one email create a single user."""
        results = await asyncio.gather(
            service.users.create_user(ROLE_USER, "bob@example.com", "hunter22"),
            service.users.create_user(ROLE_USER, "Bob@Example.com", "hunter23"),
            return_exceptions=True,
        )

        assert sum(isinstance(r, User) for r in results) == 1
        assert sum(isinstance(r, UsernameTakenError) for r in results) == 1
        assert await service.repos.users.count({"email": "bob@example.com"}) == 1

    async def test_find_by_id(self, service, alice):
        assert (await service.users.find_by_id(alice.id)).email == USER_EMAIL
        with pytest.raises(UserNotFoundError):
            await service.users.find_by_id("")

    async def test_set_password(self, service, alice):
        await service.users.set_password(alice, "correct horse")

        assert (await service.users.auth_user(USER_EMAIL, "correct horse")).id == alice.id
        with pytest.raises(PasswordTooShortError):
            await service.users.set_password(alice, "tiny")

    async def test_update_email(self, service, alice):
        await service.users.create_user(ROLE_USER, "bob@example.com", "hunter22")

        with pytest.raises(UsernameTakenError):
            await service.users.update_email(alice, "BOB@example.com")

        updated = await service.users.update_email(alice, "Alice2@example.com")
        assert updated.email == "alice2@example.com"
        assert await service.users.user_exists("alice2@example.com")
        assert not await service.users.user_exists(USER_EMAIL)

    def test_is_role_allowed(self):
        assert is_role_allowed([ROLE_USER], [ROLE_USER, ROLE_SUPERUSER])
        assert not is_role_allowed([ROLE_USER], [ROLE_SUPERUSER])
