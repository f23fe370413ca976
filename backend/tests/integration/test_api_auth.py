"""
Integration tests for authentication on the CWV read endpoints.
"""
from datetime import timedelta

import pytest
from fastapi import status

from vitalsman.core.security import check_permission, create_access_token, decode_token


class TestHealthEndpoint:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self, async_client):
        response = await async_client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data


class TestAuthenticationRequired:
    """Test that read endpoints require a bearer token."""

    @pytest.mark.asyncio
    async def test_status_requires_auth(self, async_client):
        response = await async_client.get("/api/v1/cwv/status/101")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_alerts_requires_auth(self, async_client):
        response = await async_client.get("/api/v1/cwv/alerts")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_invalid_token_rejected(self, async_client):
        response = await async_client.get(
            "/api/v1/cwv/status/101",
            headers={"Authorization": "Bearer invalid-token"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_expired_token_rejected(self, async_client):
        token = create_access_token(
            {"sub": "42", "role": "administrator"},
            expires_delta=timedelta(minutes=-5),
        )

        response = await async_client.get(
            "/api/v1/cwv/status/101",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_token_without_subject_rejected(self, async_client):
        token = create_access_token({"role": "administrator"})

        response = await async_client.get(
            "/api/v1/cwv/status/101",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestCapabilities:
    """Test role to capability mapping."""

    @pytest.mark.parametrize(
        "role,permission,expected",
        [
            ("administrator", "cwv:read", True),
            ("administrator", "cwv:manage", True),
            ("editor", "cwv:read", True),
            ("editor", "cwv:manage", False),
            ("author", "cwv:read", False),
            ("subscriber", "cwv:read", False),
            ("unknown", "cwv:read", False),
        ],
    )
    def test_check_permission(self, role, permission, expected):
        assert check_permission(role, permission) is expected

    def test_token_round_trip(self):
        token = create_access_token({"sub": "7", "role": "editor"})
        payload = decode_token(token)

        assert payload["sub"] == "7"
        assert payload["role"] == "editor"

    @pytest.mark.asyncio
    async def test_subscriber_forbidden(self, async_client, subscriber_headers):
        response = await async_client.get("/api/v1/cwv/status/101", headers=subscriber_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_editor_allowed(self, async_client, editor_headers):
        response = await async_client.get("/api/v1/cwv/status/101", headers=editor_headers)

        assert response.status_code == status.HTTP_200_OK
