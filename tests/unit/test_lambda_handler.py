"""Unit tests for AWS Lambda handler."""

from unittest.mock import MagicMock, Mock, patch

import pytest

from src.lambda_handler import lambda_handler


@pytest.mark.unit
class TestLambdaHandler:
    """Tests for lambda_handler function."""

    @pytest.fixture
    def context(self) -> MagicMock:
        """Lambda context with a request id."""
        context = MagicMock()
        context.aws_request_id = "request-id-123"
        return context

    @pytest.fixture
    def api_event(self) -> dict:
        """API Gateway HTTP event for the public menu."""
        return {
            "version": "2.0",
            "routeKey": "GET /api/public/menu/{menu_id}",
            "rawPath": "/api/public/menu/menu_1",
            "requestContext": {
                "http": {"method": "GET", "path": "/api/public/menu/menu_1"},
                "requestId": "request-id-123",
            },
        }

    @patch("src.lambda_handler.mangum_handler")
    def test_routes_request_to_mangum(self, mock_mangum: Mock, api_event: dict, context: MagicMock) -> None:
        """Test that API Gateway events are handed to the ASGI adapter."""
        mock_mangum.return_value = {"statusCode": 200, "body": "{}"}

        result = lambda_handler(api_event, context)

        mock_mangum.assert_called_once_with(api_event, context)
        assert result == {"statusCode": 200, "body": "{}"}

    @patch("src.lambda_handler.mangum_handler")
    def test_unhandled_error_returns_500(self, mock_mangum: Mock, api_event: dict, context: MagicMock) -> None:
        """Test that adapter failures produce a JSON 500 response."""
        mock_mangum.side_effect = RuntimeError("boom")

        result = lambda_handler(api_event, context)

        assert result["statusCode"] == 500
        assert result["body"] == '{"error": "Internal server error"}'
