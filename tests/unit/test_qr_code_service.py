"""Unit tests for QRCodeService."""

from unittest.mock import MagicMock

import pytest

from menu_catalog_service.exceptions import NotFoundError
from menu_catalog_service.models.catalog_models import Identity, Menu, RequestContext, Restaurant
from menu_catalog_service.services.catalog_service import CatalogService
from menu_catalog_service.services.qr_code_service import QRCodeService, render_png

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@pytest.mark.unit
class TestQRCodeService:
    """Test suite for QRCodeService."""

    @pytest.fixture
    def context(self) -> RequestContext:
        """Caller context."""
        return RequestContext(identity=Identity(user_id="user_owner_a1b2c3d4"))

    @pytest.fixture
    def restaurant(self) -> Restaurant:
        """Caller's restaurant."""
        return Restaurant(id="rest_001", owner_id="user_owner_a1b2c3d4", name="Cafe X", cuisine_type="Cafe")

    @pytest.fixture
    def catalog_service(self) -> MagicMock:
        """Mock catalog service."""
        return MagicMock(spec=CatalogService)

    @pytest.fixture
    def qr_code_service(self, catalog_service: MagicMock) -> QRCodeService:
        """QR code service with a trailing-slash origin."""
        return QRCodeService(catalog_service=catalog_service, public_app_url="https://menus.test/")

    def test_menu_url(self, qr_code_service: QRCodeService) -> None:
        """Test the public menu URL format."""
        assert qr_code_service.menu_url("menu_123") == "https://menus.test/menu/menu_123"

    def test_list_qr_codes(
        self,
        qr_code_service: QRCodeService,
        catalog_service: MagicMock,
        context: RequestContext,
        restaurant: Restaurant,
    ) -> None:
        """Test one entry per published menu."""
        menus = [
            Menu(id="menu_1", restaurant_id="rest_001", name="Lunch", slug="lunch", is_published=True),
            Menu(id="menu_2", restaurant_id="rest_001", name="Dinner", slug="dinner", is_published=True),
        ]
        catalog_service.list_published_menus.return_value = (restaurant, menus)

        listing = qr_code_service.list_qr_codes(context)

        assert listing.restaurant.name == "Cafe X"
        assert [entry.menu_name for entry in listing.qr_codes] == ["Lunch", "Dinner"]
        assert listing.qr_codes[1].menu_url == "https://menus.test/menu/menu_2"
        assert listing.qr_codes[0].restaurant_id == "rest_001"
        catalog_service.list_published_menus.assert_called_once_with(context)

    def test_list_qr_codes_without_restaurant(
        self, qr_code_service: QRCodeService, catalog_service: MagicMock, context: RequestContext
    ) -> None:
        """Test that NotFound from the catalog propagates."""
        catalog_service.list_published_menus.side_effect = NotFoundError("Restaurant not found")

        with pytest.raises(NotFoundError):
            qr_code_service.list_qr_codes(context)

    def test_render_menu_qr(
        self, qr_code_service: QRCodeService, catalog_service: MagicMock, context: RequestContext
    ) -> None:
        """Test that the owner's menu is resolved before rendering."""
        catalog_service.get_menu.return_value = Menu(id="menu_1", restaurant_id="rest_001", name="Lunch", slug="lunch")

        png = qr_code_service.render_menu_qr(context, "menu_1")

        assert png.startswith(PNG_SIGNATURE)
        catalog_service.get_menu.assert_called_once_with(context, "menu_1")

    def test_render_png(self) -> None:
        """Test that any text encodes to a PNG image."""
        assert render_png("https://menus.test/menu/menu_1").startswith(PNG_SIGNATURE)
