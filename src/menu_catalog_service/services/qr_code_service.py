"""Public menu URLs and QR code images for published menus."""

import io
import logging

import qrcode

from menu_catalog_service.models.catalog_models import (
    QRCodeEntry,
    QRCodeListing,
    RequestContext,
    RestaurantSummary,
)
from menu_catalog_service.observability import traced
from menu_catalog_service.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


class QRCodeService:
    """Builds the public URL of each published menu and renders it as a QR code."""

    def __init__(self, catalog_service: CatalogService, public_app_url: str) -> None:
        """Initialize the QR code service.

        Args:
            catalog_service: Catalog service used to resolve the caller's menus
            public_app_url: Origin of the customer-facing app (e.g. "https://menus.example.com")
        """
        self.catalog_service = catalog_service
        self.public_app_url = public_app_url.rstrip("/")

    def menu_url(self, menu_id: str) -> str:
        """Public URL of a menu."""
        return f"{self.public_app_url}/menu/{menu_id}"

    @traced("qr_codes.list")
    def list_qr_codes(self, context: RequestContext) -> QRCodeListing:
        """List QR code targets for every published, active menu of the caller.

        Raises:
            NotFoundError: If the caller has no restaurant
        """
        restaurant, menus = self.catalog_service.list_published_menus(context)

        return QRCodeListing(
            restaurant=RestaurantSummary.model_validate(restaurant),
            qr_codes=[
                QRCodeEntry(
                    id=menu.id,
                    menu_name=menu.name,
                    menu_slug=menu.slug,
                    restaurant_name=restaurant.name,
                    restaurant_id=restaurant.id,
                    menu_url=self.menu_url(menu.id),
                )
                for menu in menus
            ],
        )

    @traced("qr_codes.render")
    def render_menu_qr(self, context: RequestContext, menu_id: str) -> bytes:
        """Render the QR code of one of the caller's menus as PNG bytes.

        Raises:
            NotFoundError: If the menu is not the caller's
        """
        menu = self.catalog_service.get_menu(context, menu_id)
        return render_png(self.menu_url(menu.id))


def render_png(data: str) -> bytes:
    """Encode text as a QR code PNG."""
    buffer = io.BytesIO()
    qrcode.make(data).save(buffer)
    logger.debug(f"Rendered QR code for {data}")
    return buffer.getvalue()
