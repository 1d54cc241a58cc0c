"""
Integration Tests for the OAuth API

Tests the token and introspection endpoints, the health probe, the metrics
endpoint and request ID propagation through the full application.

Author: Keygate Team
Date: 2026-10-08
"""

import pytest
from fastapi import status

from conftest import (
    CLIENT_ID,
    CLIENT_SECRET,
    SERVICE_CLIENT_ID,
    SERVICE_CLIENT_SECRET,
    USER_EMAIL,
    USER_PASSWORD,
)

TOKENS_URL = "/v1/oauth/tokens"
INTROSPECT_URL = "/v1/oauth/introspect"
ACME_AUTH = (CLIENT_ID, CLIENT_SECRET)


def password_grant(client, **extra):
    data = {"grant_type": "password", "username": USER_EMAIL, "password": USER_PASSWORD}
    data.update(extra)
    return client.post(TOKENS_URL, data=data, auth=ACME_AUTH)


class TestTokenEndpoint:
    """Test POST /v1/oauth/tokens."""

    def test_password_grant(self, client):
        """Test the password grant happy path."""
        response = password_grant(client)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert set(body) == {"access_token", "token_type", "expires_in", "refresh_token", "scope"}
        assert len(body["access_token"]) >= 32
        assert len(body["refresh_token"]) >= 32
        assert body["token_type"] == "Bearer"
        assert body["expires_in"] == 3600
        assert body["scope"] == "read write"
        assert response.headers["cache-control"] == "no-store"
        assert response.headers["pragma"] == "no-cache"

    def test_password_grant_wrong_password(self, client):
        response = password_grant(client, password="wrong")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": "invalid username or password"}

    def test_refresh_scope_escalation(self, client):
        """Test that a refresh cannot widen the granted scope."""
        refresh_token = password_grant(client).json()["refresh_token"]

        response = client.post(
            TOKENS_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": "read write admin",
            },
            auth=ACME_AUTH,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "requested scope cannot be greater"}

    def test_refresh_narrower_scope(self, client):
        refresh_token = password_grant(client).json()["refresh_token"]

        response = client.post(
            TOKENS_URL,
            data={"grant_type": "refresh_token", "refresh_token": refresh_token, "scope": "read"},
            auth=ACME_AUTH,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["scope"] == "read"
        assert response.json()["refresh_token"] == refresh_token

    def test_unknown_refresh_token(self, client):
        response = client.post(
            TOKENS_URL,
            data={"grant_type": "refresh_token", "refresh_token": "nope"},
            auth=ACME_AUTH,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "refresh token not found"}

    def test_client_credentials_omits_refresh_token(self, client):
        response = client.post(
            TOKENS_URL,
            data={"grant_type": "client_credentials", "scope": "read"},
            auth=(SERVICE_CLIENT_ID, SERVICE_CLIENT_SECRET),
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert "refresh_token" not in body
        assert body["scope"] == "read"

    def test_invalid_scope(self, client):
        response = password_grant(client, scope="read bogus")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "invalid scope"}

    def test_invalid_grant_type(self, client):
        response = client.post(TOKENS_URL, data={"grant_type": "implicit"}, auth=ACME_AUTH)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "invalid grant type"}

    def test_grant_type_checked_before_client(self, client):
        response = client.post(TOKENS_URL, data={"grant_type": "bogus"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "invalid grant type"}

    @pytest.mark.parametrize(
        "auth",
        [None, (CLIENT_ID, "wrong"), ("nobody", CLIENT_SECRET)],
    )
    def test_bad_client_credentials(self, client, auth):
        response = client.post(
            TOKENS_URL,
            data={"grant_type": "client_credentials"},
            auth=auth,
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": "invalid client ID or secret"}
        assert response.headers["www-authenticate"] == "Bearer realm=oauth2_server"

    def test_client_id_case_insensitive(self, client):
        response = client.post(
            TOKENS_URL,
            data={"grant_type": "client_credentials"},
            auth=("ACME", CLIENT_SECRET),
        )

        assert response.status_code == status.HTTP_200_OK


class TestIntrospectEndpoint:
    """Test POST /v1/oauth/introspect."""

    def test_active_access_token(self, client):
        access_token = password_grant(client, scope="read").json()["access_token"]

        response = client.post(INTROSPECT_URL, data={"token": access_token}, auth=ACME_AUTH)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["active"] is True
        assert body["scope"] == "read"
        assert body["client_id"] == CLIENT_ID
        assert body["username"] == USER_EMAIL
        assert body["token_type"] == "Bearer"
        assert isinstance(body["exp"], int)

    def test_expired_access_token(self, client, clock):
        """Test that an expired token reports only active:false."""
        access_token = password_grant(client).json()["access_token"]
        clock.advance(3601)

        response = client.post(INTROSPECT_URL, data={"token": access_token}, auth=ACME_AUTH)

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"active": False}

    def test_refresh_token_hint(self, client):
        refresh_token = password_grant(client).json()["refresh_token"]

        response = client.post(
            INTROSPECT_URL,
            data={"token": refresh_token, "token_type_hint": "refresh_token"},
            auth=ACME_AUTH,
        )

        assert response.json()["active"] is True
        assert response.json()["scope"] == "read write"

    def test_token_missing(self, client):
        response = client.post(INTROSPECT_URL, data={}, auth=ACME_AUTH)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "token missing"}

    def test_invalid_hint(self, client):
        response = client.post(
            INTROSPECT_URL, data={"token": "x", "token_type_hint": "id_token"}, auth=ACME_AUTH
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "invalid token hint"}

    def test_requires_client_auth(self, client):
        response = client.post(INTROSPECT_URL, data={"token": "x"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestOperationalEndpoints:
    """Test health, metrics and request IDs."""

    @pytest.mark.parametrize("method", ["GET", "POST", "HEAD"])
    def test_health(self, client, method):
        response = client.request(method, "/_ah/health")

        assert response.status_code == status.HTTP_200_OK
        if method != "HEAD":
            assert response.text == "ok"

    def test_health_store_down(self, client, store, monkeypatch):
        async def down():
            return False

        monkeypatch.setattr(store, "ping", down)

        response = client.get("/_ah/health")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.text == "database error"

    def test_store_failure_is_generic_500(self, client, store, monkeypatch):
        from keygate.store.exceptions import StoreError

        async def broken(*args, **kwargs):
            raise StoreError("connection reset by peer")

        monkeypatch.setattr(store, "find_one", broken)

        response = password_grant(client)

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"error": "internal server error"}

    def test_metrics(self, client):
        password_grant(client)
        password_grant(client, password="wrong")

        response = client.get("/metrics")

        assert response.status_code == status.HTTP_200_OK
        assert 'keygate_token_grants_total{grant_type="password",outcome="success"} 1.0' in response.text
        assert 'keygate_errors_total{error_type="InvalidUsernameOrPasswordError"} 1.0' in response.text

    def test_request_id_echoed(self, client):
        response = client.get("/_ah/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["x-request-id"] == "req-42"

    def test_request_id_generated(self, client):
        response = client.get("/_ah/health")

        assert len(response.headers["x-request-id"]) == 36
