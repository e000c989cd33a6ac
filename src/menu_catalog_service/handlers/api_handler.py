"""FastAPI application for the menu catalog API."""

import logging
from typing import Any

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from menu_catalog_service.auth.session_dependencies import get_request_context
from menu_catalog_service.exceptions import CatalogError, InternalError, InvalidInputError
from menu_catalog_service.models.billing_models import (
    BillingOverview,
    OwnerProfile,
    PaymentResult,
    ProfileUpdate,
    Subscription,
)
from menu_catalog_service.models.catalog_models import (
    Activity,
    Category,
    CategoryDeletion,
    DashboardSummary,
    Item,
    Menu,
    PublicMenu,
    QRCodeListing,
    RequestContext,
    Restaurant,
)
from menu_catalog_service.services.account_service import AccountService
from menu_catalog_service.services.asset_storage import AssetStorage, StoredAsset
from menu_catalog_service.services.billing_service import BillingService
from menu_catalog_service.services.catalog_service import CatalogService
from menu_catalog_service.services.identity_client import IdentityClient
from menu_catalog_service.services.qr_code_service import QRCodeService

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class MessageResponse(BaseModel):
    """Plain confirmation message."""

    message: str


class RestaurantStatusResponse(BaseModel):
    """Whether the caller has onboarded a restaurant."""

    has_restaurant: bool


def error_response(status_code: int, message: str) -> JSONResponse:
    """Error body used by every failing route."""
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    catalog_service: CatalogService,
    identity_client: IdentityClient,
    qr_code_service: QRCodeService,
    billing_service: BillingService,
    account_service: AccountService,
    asset_storage: AssetStorage | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        catalog_service: Restaurants, menus, categories, items and the public menu
        identity_client: Resolves request sessions into identities
        qr_code_service: Public menu URLs and QR images
        billing_service: Payment verification and subscriptions
        account_service: Owner profile and email verification
        asset_storage: Image upload target; uploads fail with 500 when not configured

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Menu Catalog API",
        description="Restaurant onboarding, menu management and public menus",
        version="1.0.0",
    )

    # Store services in app state for access in route handlers
    app.state.catalog_service = catalog_service
    app.state.identity_client = identity_client
    app.state.qr_code_service = qr_code_service
    app.state.billing_service = billing_service
    app.state.account_service = account_service
    app.state.asset_storage = asset_storage

    @app.exception_handler(CatalogError)
    async def handle_catalog_error(request: Request, exc: CatalogError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        if not errors:
            return error_response(400, "Invalid request")
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
        return error_response(400, message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return error_response(500, InternalError.default_message)

    async def require_context(request: Request) -> RequestContext:
        """Dependency resolving the caller's session."""
        return await get_request_context(request.headers, app.state.identity_client)

    async def json_body(request: Request, _context: RequestContext = Depends(require_context)) -> dict[str, Any]:
        """Dependency reading the JSON object body once the session is known.

        Depending on ``require_context`` makes a missing session a 401 even
        when the body is malformed.
        """
        try:
            body = await request.json()
        except ValueError as e:
            raise InvalidInputError("Invalid JSON body") from e
        if not isinstance(body, dict):
            raise InvalidInputError("Request body must be a JSON object")
        return body

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint.

        Returns:
            Health status indicating service is running
        """
        return HealthResponse(status="healthy")

    # Restaurant

    @app.post("/api/restaurants", response_model=Restaurant, status_code=201, tags=["Restaurant"])
    def create_restaurant(
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> Restaurant:
        """Onboard the caller's restaurant."""
        restaurant: Restaurant = app.state.catalog_service.create_restaurant(context, body)
        return restaurant

    @app.get("/api/restaurants", response_model=Restaurant, tags=["Restaurant"])
    def get_restaurant(context: RequestContext = Depends(require_context)) -> Restaurant:
        """Get the caller's restaurant."""
        restaurant: Restaurant = app.state.catalog_service.get_restaurant(context)
        return restaurant

    @app.put("/api/restaurants", response_model=Restaurant, tags=["Restaurant"])
    def update_restaurant(
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> Restaurant:
        """Partially update the caller's restaurant."""
        restaurant: Restaurant = app.state.catalog_service.update_restaurant(context, body)
        return restaurant

    @app.get("/api/user/restaurant-status", response_model=RestaurantStatusResponse, tags=["Restaurant"])
    def get_restaurant_status(context: RequestContext = Depends(require_context)) -> RestaurantStatusResponse:
        """Whether the caller has completed onboarding."""
        return RestaurantStatusResponse(
            has_restaurant=app.state.catalog_service.get_restaurant_status(context)
        )

    # Menus

    @app.get("/api/menus", response_model=list[Menu], tags=["Menus"])
    def list_menus(context: RequestContext = Depends(require_context)) -> list[Menu]:
        """List the caller's menus."""
        menus: list[Menu] = app.state.catalog_service.list_menus(context)
        return menus

    @app.post("/api/menus", response_model=Menu, status_code=201, tags=["Menus"])
    def create_menu(
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> Menu:
        """Create a menu."""
        menu: Menu = app.state.catalog_service.create_menu(context, body)
        return menu

    @app.get("/api/menus/{menu_id}", response_model=Menu, tags=["Menus"])
    def get_menu(menu_id: str, context: RequestContext = Depends(require_context)) -> Menu:
        """Get one menu."""
        menu: Menu = app.state.catalog_service.get_menu(context, menu_id)
        return menu

    @app.put("/api/menus/{menu_id}", response_model=Menu, tags=["Menus"])
    def update_menu(
        menu_id: str,
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> Menu:
        """Partially update a menu, including publishing it."""
        menu: Menu = app.state.catalog_service.update_menu(context, menu_id, body)
        return menu

    @app.delete("/api/menus/{menu_id}", response_model=MessageResponse, tags=["Menus"])
    def delete_menu(menu_id: str, context: RequestContext = Depends(require_context)) -> MessageResponse:
        """Delete a menu with its categories and items."""
        app.state.catalog_service.delete_menu(context, menu_id)
        return MessageResponse(message="Menu deleted successfully")

    # Categories

    @app.get("/api/menus/{menu_id}/categories", response_model=list[Category], tags=["Categories"])
    def list_categories(menu_id: str, context: RequestContext = Depends(require_context)) -> list[Category]:
        """List a menu's categories."""
        categories: list[Category] = app.state.catalog_service.list_categories(context, menu_id)
        return categories

    @app.post("/api/menus/{menu_id}/categories", response_model=Category, status_code=201, tags=["Categories"])
    def create_category(
        menu_id: str,
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> Category:
        """Create a category at the end of the menu."""
        category: Category = app.state.catalog_service.create_category(context, menu_id, body)
        return category

    @app.get("/api/menus/{menu_id}/categories/{category_id}", response_model=Category, tags=["Categories"])
    def get_category(
        menu_id: str, category_id: str, context: RequestContext = Depends(require_context)
    ) -> Category:
        """Get one category."""
        category: Category = app.state.catalog_service.get_category(context, menu_id, category_id)
        return category

    @app.put("/api/menus/{menu_id}/categories/{category_id}", response_model=Category, tags=["Categories"])
    def update_category(
        menu_id: str,
        category_id: str,
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> Category:
        """Partially update a category."""
        category: Category = app.state.catalog_service.update_category(context, menu_id, category_id, body)
        return category

    @app.delete(
        "/api/menus/{menu_id}/categories/{category_id}",
        response_model=CategoryDeletion,
        tags=["Categories"],
    )
    def delete_category(
        menu_id: str, category_id: str, context: RequestContext = Depends(require_context)
    ) -> CategoryDeletion:
        """Delete a category and its items."""
        deletion: CategoryDeletion = app.state.catalog_service.delete_category(context, menu_id, category_id)
        return deletion

    # Items

    @app.get("/api/menus/{menu_id}/items", response_model=list[Item], tags=["Items"])
    def list_items(menu_id: str, context: RequestContext = Depends(require_context)) -> list[Item]:
        """List a menu's items."""
        items: list[Item] = app.state.catalog_service.list_items(context, menu_id)
        return items

    @app.post("/api/menus/{menu_id}/items", response_model=Item, status_code=201, tags=["Items"])
    def create_item(
        menu_id: str,
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> Item:
        """Create an item."""
        item: Item = app.state.catalog_service.create_item(context, menu_id, body)
        return item

    @app.get("/api/menus/{menu_id}/items/{item_id}", response_model=Item, tags=["Items"])
    def get_item(menu_id: str, item_id: str, context: RequestContext = Depends(require_context)) -> Item:
        """Get one item."""
        item: Item = app.state.catalog_service.get_item(context, menu_id, item_id)
        return item

    @app.put("/api/menus/{menu_id}/items/{item_id}", response_model=Item, tags=["Items"])
    def update_item(
        menu_id: str,
        item_id: str,
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> Item:
        """Replace an item."""
        item: Item = app.state.catalog_service.update_item(context, menu_id, item_id, body)
        return item

    @app.patch("/api/menus/{menu_id}/items/{item_id}", response_model=Item, tags=["Items"])
    def patch_item(
        menu_id: str,
        item_id: str,
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> Item:
        """Toggle availability or reorder an item."""
        item: Item = app.state.catalog_service.patch_item_fields(context, menu_id, item_id, body)
        return item

    @app.delete("/api/menus/{menu_id}/items/{item_id}", response_model=MessageResponse, tags=["Items"])
    def delete_item(menu_id: str, item_id: str, context: RequestContext = Depends(require_context)) -> MessageResponse:
        """Delete an item."""
        app.state.catalog_service.delete_item(context, menu_id, item_id)
        return MessageResponse(message="Menu item deleted successfully")

    # Public menu

    @app.get("/api/public/menu/{menu_id}", response_model=PublicMenu, tags=["Public"])
    def get_public_menu(menu_id: str) -> PublicMenu:
        """Customer-facing menu, no authentication required."""
        public_menu: PublicMenu = app.state.catalog_service.get_public_menu(menu_id)
        return public_menu

    # Dashboard and QR codes

    @app.get("/api/dashboard/summary", response_model=DashboardSummary, tags=["Dashboard"])
    def get_dashboard_summary(context: RequestContext = Depends(require_context)) -> DashboardSummary:
        """Counts for the owner dashboard."""
        summary: DashboardSummary = app.state.catalog_service.get_dashboard_summary(context)
        return summary

    @app.get("/api/dashboard/activity", response_model=list[Activity], tags=["Dashboard"])
    def get_dashboard_activity(context: RequestContext = Depends(require_context)) -> list[Activity]:
        """Recently created or updated menus and items."""
        activities: list[Activity] = app.state.catalog_service.get_dashboard_activity(context)
        return activities

    @app.get("/api/qr-codes", response_model=QRCodeListing, tags=["QR Codes"])
    def list_qr_codes(context: RequestContext = Depends(require_context)) -> QRCodeListing:
        """Public URLs of the caller's published menus."""
        listing: QRCodeListing = app.state.qr_code_service.list_qr_codes(context)
        return listing

    @app.get("/api/qr-codes/{menu_id}/image", tags=["QR Codes"])
    def get_qr_code_image(menu_id: str, context: RequestContext = Depends(require_context)) -> Response:
        """PNG QR code pointing at a menu's public page."""
        png = app.state.qr_code_service.render_menu_qr(context, menu_id)
        return Response(
            content=png,
            media_type="image/png",
            headers={"Content-Disposition": f'inline; filename="menu-{menu_id}.png"'},
        )

    # Uploads

    @app.post("/api/upload", response_model=StoredAsset, status_code=201, tags=["Uploads"])
    async def upload_image(
        file: UploadFile = File(...),
        _context: RequestContext = Depends(require_context),
    ) -> StoredAsset:
        """Upload an image and return its URL and file id."""
        storage: AssetStorage | None = app.state.asset_storage
        if storage is None:
            logger.error("Upload requested but asset storage is not configured")
            raise InternalError("Image upload is not available")

        data = await file.read()
        asset = await run_in_threadpool(storage.upload_image, data, file.filename, file.content_type)
        if asset is None:
            raise InternalError("Failed to upload image")
        return asset

    # Billing

    @app.post("/api/verify-payment", response_model=PaymentResult, tags=["Billing"])
    def verify_payment(
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> PaymentResult:
        """Verify a completed payment and activate the subscription."""
        result: PaymentResult = app.state.billing_service.verify_payment(context, body)
        return result

    @app.get("/api/billing", response_model=BillingOverview, tags=["Billing"])
    def get_billing(context: RequestContext = Depends(require_context)) -> BillingOverview:
        """Subscription and recent payments."""
        overview: BillingOverview = app.state.billing_service.get_billing(context)
        return overview

    @app.post("/api/cancel-subscription", response_model=Subscription, tags=["Billing"])
    def cancel_subscription(context: RequestContext = Depends(require_context)) -> Subscription:
        """Cancel the caller's subscription."""
        subscription: Subscription = app.state.billing_service.cancel_subscription(context)
        return subscription

    # Account

    @app.get("/api/user", response_model=OwnerProfile, tags=["Account"])
    def get_profile(context: RequestContext = Depends(require_context)) -> OwnerProfile:
        """The caller's profile."""
        profile: OwnerProfile = app.state.account_service.get_profile(context)
        return profile

    @app.patch("/api/user", response_model=ProfileUpdate, tags=["Account"])
    def update_profile(
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> ProfileUpdate:
        """Update name, image or email."""
        update: ProfileUpdate = app.state.account_service.update_profile(context, body)
        return update

    @app.post("/api/user/verify-email", response_model=OwnerProfile, tags=["Account"])
    def verify_email(
        body: dict[str, Any] = Depends(json_body),
        context: RequestContext = Depends(require_context),
    ) -> OwnerProfile:
        """Confirm a changed email address."""
        token = body.get("token")
        if not isinstance(token, str):
            raise InvalidInputError("token is required", field="token")
        profile: OwnerProfile = app.state.account_service.verify_email(context, token)
        return profile

    @app.post("/api/user/upload-image", response_model=OwnerProfile, tags=["Account"])
    async def upload_profile_image(
        file: UploadFile = File(...),
        context: RequestContext = Depends(require_context),
    ) -> OwnerProfile:
        """Replace the caller's profile picture."""
        data = await file.read()
        profile: OwnerProfile = await run_in_threadpool(
            app.state.account_service.upload_profile_image, context, data, file.filename, file.content_type
        )
        return profile

    @app.delete("/api/user/upload-image", response_model=OwnerProfile, tags=["Account"])
    def remove_profile_image(context: RequestContext = Depends(require_context)) -> OwnerProfile:
        """Remove the caller's profile picture."""
        profile: OwnerProfile = app.state.account_service.remove_profile_image(context)
        return profile

    return app
