"""Unit tests for the tracing decorator."""

from unittest.mock import MagicMock, patch

import pytest

from menu_catalog_service.exceptions import NotFoundError
from menu_catalog_service.observability import traced


@pytest.fixture
def span() -> MagicMock:
    """Span yielded by a mocked tracer."""
    return MagicMock()


@pytest.fixture
def tracer(span: MagicMock):
    """Patch the tracer used by newly decorated functions."""
    mock_tracer = MagicMock()
    mock_tracer.start_as_current_span.return_value.__enter__.return_value = span
    with patch("menu_catalog_service.observability.decorators.trace.get_tracer", return_value=mock_tracer):
        yield mock_tracer


@pytest.mark.unit
class TestTraced:
    """Tests for @traced on sync and async functions."""

    def test_sync_success(self, tracer: MagicMock, span: MagicMock) -> None:
        """Test that a successful call opens a named span."""

        @traced("catalog.get_menu")
        def get_menu(menu_id: str) -> str:
            return menu_id

        assert get_menu("menu_1") == "menu_1"
        tracer.start_as_current_span.assert_called_once_with("catalog.get_menu", record_exception=False)
        span.set_attribute.assert_any_call("success", True)
        span.set_attribute.assert_any_call("function.name", "get_menu")

    def test_catalog_error_keeps_status_only(self, tracer: MagicMock, span: MagicMock) -> None:
        """Test that expected errors are annotated, not recorded as exceptions."""

        @traced("catalog.get_menu")
        def get_menu() -> None:
            raise NotFoundError("Menu not found")

        with pytest.raises(NotFoundError):
            get_menu()

        span.set_attribute.assert_any_call("error.status_code", 404)
        span.record_exception.assert_not_called()

    def test_unexpected_error_recorded(self, tracer: MagicMock, span: MagicMock) -> None:
        """Test that unexpected errors are recorded on the span and re-raised."""
        error = RuntimeError("boom")

        @traced()
        def explode() -> None:
            raise error

        with pytest.raises(RuntimeError):
            explode()

        tracer.start_as_current_span.assert_called_once_with("explode", record_exception=False)
        span.record_exception.assert_called_once_with(error)
        span.set_attribute.assert_any_call("success", False)

    @pytest.mark.asyncio
    async def test_async_function(self, tracer: MagicMock, span: MagicMock) -> None:
        """Test that coroutines stay awaitable."""

        @traced("identity.get_session")
        async def get_session() -> str:
            return "user_1"

        assert await get_session() == "user_1"
        span.set_attribute.assert_any_call("success", True)
