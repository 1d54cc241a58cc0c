"""
Shared fixtures for Keygate tests.

Author: Keygate Team
Date: 2026-10-08
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from keygate.app import create_app
from keygate.core.config_manager import (
    BootstrapClient,
    BootstrapConfig,
    BootstrapScope,
    BootstrapUser,
    KeygateConfig,
    OAuthConfig,
)
from keygate.oauth.service import OAuthService
from keygate.store.memory_backend import InMemoryRecordStore

CLIENT_ID = "acme"
CLIENT_SECRET = "s3cr3t"
REDIRECT_URI = "https://acme.example/cb"
SERVICE_CLIENT_ID = "svc"
SERVICE_CLIENT_SECRET = "svc-secret"
USER_EMAIL = "alice@example.com"
USER_PASSWORD = "hunter22"


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def bootstrap_config() -> BootstrapConfig:
    return BootstrapConfig(
        scopes=[
            BootstrapScope(scope="read", is_default=True),
            BootstrapScope(scope="write", is_default=True),
            BootstrapScope(scope="admin"),
        ],
        clients=[
            BootstrapClient(
                client_id=CLIENT_ID,
                client_secret=CLIENT_SECRET,
                redirect_url=REDIRECT_URI,
                app_name="Acme",
            ),
            BootstrapClient(
                client_id=SERVICE_CLIENT_ID,
                client_secret=SERVICE_CLIENT_SECRET,
                redirect_url="https://svc.example/cb",
            ),
        ],
        users=[BootstrapUser(email=USER_EMAIL, password=USER_PASSWORD)],
    )


def oauth_config(**overrides) -> OAuthConfig:
    return OAuthConfig(password_hash_rounds=4, **overrides)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
async def service(store, clock):
    """OAuth service over an in-memory store seeded with the test records."""
    oauth_service = OAuthService(store, oauth_config(), clock=clock)
    await oauth_service.bootstrap(bootstrap_config())
    return oauth_service


@pytest.fixture
async def acme(service):
    return await service.clients.find_by_client_id(CLIENT_ID)


@pytest.fixture
async def svc(service):
    return await service.clients.find_by_client_id(SERVICE_CLIENT_ID)


@pytest.fixture
async def alice(service):
    return await service.users.find_by_email(USER_EMAIL)


@pytest.fixture
def config():
    return KeygateConfig(oauth=oauth_config(), bootstrap=bootstrap_config())


@pytest.fixture
def app(config, store, clock):
    return create_app(config, store=store, clock=clock)


@pytest.fixture
def client(app):
    """Test client; entering it runs startup so the records are seeded."""
    with TestClient(app) as test_client:
        yield test_client
