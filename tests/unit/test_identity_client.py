"""Unit tests for IdentityClient."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from menu_catalog_service.services.identity_client import IdentityClient


@pytest.mark.unit
class TestIdentityClient:
    """Test suite for IdentityClient."""

    @pytest.fixture
    def client(self) -> IdentityClient:
        """Create an IdentityClient with test configuration."""
        return IdentityClient(base_url="https://auth.test.com/")

    def test_client_initialization(self, client: IdentityClient) -> None:
        """Test that the trailing slash is dropped from the base URL."""
        assert client.base_url == "https://auth.test.com"
        assert client.timeout == 5.0

    @pytest.mark.asyncio
    async def test_get_session_success(self, client: IdentityClient) -> None:
        """Test resolving a session cookie into an identity."""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {
            "session": {"id": "sess_1", "expiresAt": "2030-01-01T00:00:00Z"},
            "user": {
                "id": "user_owner_a1b2c3d4",
                "email": "owner@bistro.example",
                "name": "Olivia Owner",
                "emailVerified": True,
            },
        }

        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=mock_response) as mock_get:
            identity = await client.get_session({"cookie": "session_token=abc", "accept": "text/html"})

        assert identity is not None
        assert identity.user_id == "user_owner_a1b2c3d4"
        assert identity.email == "owner@bistro.example"
        assert identity.email_verified is True
        mock_get.assert_awaited_once_with(
            "https://auth.test.com/api/auth/get-session",
            headers={"cookie": "session_token=abc"},
        )

    @pytest.mark.asyncio
    async def test_get_session_forwards_bearer_token(self, client: IdentityClient) -> None:
        """Test that an Authorization header is forwarded."""
        mock_response = MagicMock()
        mock_response.json.return_value = {"user": {"id": 42, "email": "a@b.example"}}

        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=mock_response) as mock_get:
            identity = await client.get_session({"authorization": "Bearer tok"})

        assert identity is not None
        assert identity.user_id == "42"
        assert identity.email_verified is False
        assert mock_get.await_args.kwargs["headers"] == {"authorization": "Bearer tok"}

    @pytest.mark.asyncio
    async def test_no_credentials_skips_request(self, client: IdentityClient) -> None:
        """Test that requests without cookie or token are not sent to the provider."""
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            identity = await client.get_session({"accept": "application/json"})

        assert identity is None
        mock_get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_null_session_returns_none(self, client: IdentityClient) -> None:
        """Test that an expired session (null body) yields no identity."""
        mock_response = MagicMock()
        mock_response.json.return_value = None

        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=mock_response):
            identity = await client.get_session({"cookie": "session_token=expired"})

        assert identity is None

    @pytest.mark.asyncio
    async def test_provider_error_returns_none(self, client: IdentityClient) -> None:
        """Test that provider HTTP errors return None."""
        mock_response = MagicMock()
        mock_response.status_code = 500
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Server error", request=MagicMock(), response=mock_response
        )

        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=mock_response):
            identity = await client.get_session({"cookie": "session_token=abc"})

        assert identity is None

    @pytest.mark.asyncio
    async def test_network_error_returns_none(self, client: IdentityClient) -> None:
        """Test that connection failures return None."""
        with patch(
            "httpx.AsyncClient.get",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("Connection refused"),
        ):
            identity = await client.get_session({"cookie": "session_token=abc"})

        assert identity is None

    @pytest.mark.asyncio
    async def test_invalid_json_returns_none(self, client: IdentityClient) -> None:
        """Test that a non-JSON response returns None."""
        mock_response = MagicMock()
        mock_response.json.side_effect = ValueError("Expecting value")

        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=mock_response):
            identity = await client.get_session({"cookie": "session_token=abc"})

        assert identity is None
