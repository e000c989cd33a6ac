"""Catalog data models.

Input models (``*Create``/``*Patch``) carry validation for caller-supplied
fields; patch models forbid unknown keys and only the fields a caller actually
sent are applied. Output models are built from storage records with
``from_attributes`` and are what every catalog operation returns.
"""

import re
from collections.abc import Mapping
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from menu_catalog_service.exceptions import InvalidInputError

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+\d{1,3}\d{10}$")
COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
URL_PATTERN = re.compile(r"^(https?://)?([\w-]+\.)+[\w-]+(/\S*)?$")

PRICE_PRECISION = Decimal("0.01")
UNCATEGORIZED_NAME = "Uncategorized"

ModelT = TypeVar("ModelT", bound=BaseModel)


class Identity(BaseModel):
    """Authenticated caller as reported by the identity provider."""

    user_id: str = Field(..., description="Identity provider user id")
    email: str | None = Field(None, description="Account email")
    name: str | None = Field(None, description="Display name")
    email_verified: bool = Field(default=False, description="Whether the email is verified")


class RequestContext(BaseModel):
    """Explicit per-request context passed into every owner-facing operation."""

    model_config = ConfigDict(frozen=True)

    identity: Identity

    @property
    def owner_id(self) -> str:
        """Owner id of the caller."""
        return self.identity.user_id


def parse_input(model_cls: type[ModelT], data: ModelT | Mapping[str, Any]) -> ModelT:
    """Build an input model, converting pydantic errors to InvalidInputError.

    Args:
        model_cls: Input model class to validate against
        data: Either an already-built model or a raw mapping (e.g. a JSON body)

    Returns:
        Validated model instance

    Raises:
        InvalidInputError: With a field-specific message for the first failure
    """
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise invalid_input_from(e) from e


def invalid_input_from(error: ValidationError) -> InvalidInputError:
    """Translate the first pydantic error into an InvalidInputError."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    error_type = first.get("type")

    if error_type == "value_error" and "error" in first.get("ctx", {}):
        message = str(first["ctx"]["error"])
    elif error_type == "missing":
        message = f"{field} is required"
    elif error_type == "extra_forbidden":
        message = f"Unknown field: {field}"
    else:
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))

    return InvalidInputError(message, field=field)


def _clean_optional(value: Any) -> Any:
    """Trim strings and turn blank ones into None."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _require_name(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise ValueError(message)
    return value.strip()


def _check_order(value: int | None, label: str) -> int | None:
    if value is not None and value < 0:
        raise ValueError(f"{label} must be a non-negative number")
    return value


# Restaurant


class RestaurantFields(BaseModel):
    """Validators shared by restaurant create and patch models."""

    @field_validator(
        "address",
        "phone",
        "email",
        "google_business_url",
        "google_rating",
        "cuisine_type",
        "description",
        "logo_url",
        "logo_file_id",
        mode="before",
        check_fields=False,
    )
    @classmethod
    def clean_optional_text(cls, v: Any) -> Any:
        """Blank optional fields are stored as null."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return _clean_optional(v)

    @field_validator("email", check_fields=False)
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        """Validate restaurant contact email format."""
        if v is not None and not EMAIL_PATTERN.match(v):
            raise ValueError("Please enter a valid email address")
        return v

    @field_validator("phone", check_fields=False)
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Phone must be +<country code><10 digits>."""
        if v is not None and not PHONE_PATTERN.match(v):
            raise ValueError("Please enter a valid 10-digit phone number with country code")
        return v

    @field_validator("google_business_url", check_fields=False)
    @classmethod
    def validate_google_business_url(cls, v: str | None) -> str | None:
        """Validate the Google Business profile URL."""
        if v is not None and not URL_PATTERN.match(v):
            raise ValueError("Please enter a valid URL")
        return v

    @field_validator("google_rating", check_fields=False)
    @classmethod
    def validate_google_rating(cls, v: str | None) -> str | None:
        """Rating must be numeric and within [0, 5]."""
        if v is None:
            return v
        try:
            rating = Decimal(v)
        except InvalidOperation:
            raise ValueError("Rating must be between 0 and 5") from None
        if not rating.is_finite() or rating < 0 or rating > 5:
            raise ValueError("Rating must be between 0 and 5")
        return v

    @field_validator("color_theme", check_fields=False)
    @classmethod
    def validate_color_theme(cls, v: str | None) -> str | None:
        """Color theme must be a #RRGGBB hex string."""
        if v is not None and not COLOR_PATTERN.match(v):
            raise ValueError("Color theme must be a hex color like #000000")
        return v


class RestaurantCreate(RestaurantFields):
    """Onboarding payload for a new restaurant."""

    name: str = Field(..., description="Restaurant name")
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    google_business_url: str | None = None
    google_rating: str | None = None
    cuisine_type: str | None = None
    description: str | None = None
    logo_url: str | None = None
    logo_file_id: str | None = None
    color_theme: str = "#000000"
    subscription_tier: str = "FREE"

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Restaurant name must not be blank."""
        return _require_name(v, "Restaurant name is required")

    @field_validator("color_theme", "subscription_tier", mode="before")
    @classmethod
    def default_blank(cls, v: Any, info: ValidationInfo) -> Any:
        """Blank theme or tier falls back to the default."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return cls.model_fields[info.field_name].default
        return v


class RestaurantPatch(RestaurantFields):
    """Partial restaurant update; only fields that were sent are applied."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    google_business_url: str | None = None
    google_rating: str | None = None
    cuisine_type: str | None = None
    description: str | None = None
    logo_url: str | None = None
    logo_file_id: str | None = None
    color_theme: str | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        """A provided name must not be blank."""
        if v is None:
            return v
        return _require_name(v, "Restaurant name is required")


class Restaurant(BaseModel):
    """Restaurant profile."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    name: str
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    google_business_url: str | None = None
    google_rating: str | None = None
    cuisine_type: str | None = None
    description: str | None = None
    logo_url: str | None = None
    logo_file_id: str | None = None
    color_theme: str = "#000000"
    subscription_tier: str = "FREE"
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


# Menu


class MenuCreate(BaseModel):
    """Payload for creating a menu."""

    name: str = Field(..., description="Menu name")
    description: str | None = None
    slug: str | None = Field(None, description="Custom slug, derived from the name if omitted")
    is_published: bool = False
    is_active: bool = True
    display_order: int = 0

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Menu name must not be blank."""
        return _require_name(v, "Menu name is required and must be a non-empty string")

    @field_validator("description", "slug", mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> Any:
        """Trim and null out blank text."""
        return _clean_optional(v)

    @field_validator("display_order", mode="before")
    @classmethod
    def default_display_order(cls, v: Any) -> Any:
        """A missing display order means 0."""
        return 0 if v is None else v

    @field_validator("display_order")
    @classmethod
    def validate_display_order(cls, v: int) -> int:
        """Display order must be non-negative."""
        _check_order(v, "Display order")
        return v


class MenuPatch(BaseModel):
    """Partial menu update."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    description: str | None = None
    slug: str | None = None
    is_published: bool | None = None
    is_active: bool | None = None
    display_order: int | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        """A provided name must not be blank."""
        if v is None:
            return v
        return _require_name(v, "Menu name must be a non-empty string")

    @field_validator("description", mode="before")
    @classmethod
    def clean_description(cls, v: Any) -> Any:
        """Trim and null out blank text."""
        return _clean_optional(v)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str | None) -> str | None:
        """A provided slug must not be blank."""
        if v is None:
            return v
        if not v.strip():
            raise ValueError("Slug must be a non-empty string")
        return v.strip()

    @field_validator("display_order")
    @classmethod
    def validate_display_order(cls, v: int | None) -> int | None:
        """Display order must be non-negative."""
        return _check_order(v, "Display order")


class Menu(BaseModel):
    """Menu as seen by its owner."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    restaurant_id: str
    name: str
    description: str | None = None
    slug: str
    is_published: bool = False
    is_active: bool = True
    display_order: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


# Category


class CategoryCreate(BaseModel):
    """Payload for creating a category."""

    name: str = Field(..., description="Category name")
    description: str | None = None
    is_active: bool = True
    display_order: int = 0

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Category name must not be blank."""
        return _require_name(v, "Category name is required")

    @field_validator("description", mode="before")
    @classmethod
    def clean_description(cls, v: Any) -> Any:
        """Trim and null out blank text."""
        return _clean_optional(v)

    @field_validator("display_order")
    @classmethod
    def validate_display_order(cls, v: int) -> int:
        """Display order must be non-negative."""
        _check_order(v, "Display order")
        return v


class CategoryPatch(BaseModel):
    """Partial category update. ``menu_id`` is deliberately absent."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    description: str | None = None
    is_active: bool | None = None
    sort_order: int | None = None
    display_order: int | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        """A provided name must not be blank."""
        if v is None:
            return v
        return _require_name(v, "Category name must be a non-empty string")

    @field_validator("description", mode="before")
    @classmethod
    def clean_description(cls, v: Any) -> Any:
        """Trim and null out blank text."""
        return _clean_optional(v)

    @field_validator("sort_order")
    @classmethod
    def validate_sort_order(cls, v: int | None) -> int | None:
        """Sort order must be non-negative."""
        return _check_order(v, "Sort order")

    @field_validator("display_order")
    @classmethod
    def validate_display_order(cls, v: int | None) -> int | None:
        """Display order must be non-negative."""
        return _check_order(v, "Display order")


class Category(BaseModel):
    """Menu category."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    menu_id: str
    name: str
    description: str | None = None
    sort_order: int = 0
    display_order: int = 0
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryDeletion(BaseModel):
    """Result of deleting a category together with its items."""

    message: str = "Category deleted successfully"
    deleted_items_count: int
    deleted_items: list[str]


# Item


class ItemCreate(BaseModel):
    """Full item payload used for both creation and replacement."""

    name: str = Field(..., description="Item name")
    description: str | None = None
    price: Decimal = Field(..., description="Price, stored with 2 decimal places")
    estimated_time: int | None = Field(None, description="Preparation time in minutes")
    ingredients: list[str] = Field(default_factory=list)
    category_id: str = Field(..., description="Category in the same menu")
    image_url: str | None = None
    image_file_id: str | None = None
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    is_spicy: bool = False
    is_available: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Item name must not be blank."""
        return _require_name(v, "Item name is required")

    @field_validator("description", "image_url", "image_file_id", mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> Any:
        """Trim and null out blank text."""
        return _clean_optional(v)

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v: Any) -> Decimal:
        """Price must be numeric and non-negative; rounded half-up to cents."""
        if v is None or isinstance(v, bool):
            raise ValueError("Valid price is required")
        try:
            price = Decimal(str(v).strip())
        except InvalidOperation:
            raise ValueError("Valid price is required") from None
        if not price.is_finite() or price < 0:
            raise ValueError("Valid price is required")
        return price.quantize(PRICE_PRECISION, rounding=ROUND_HALF_UP)

    @field_validator("estimated_time", mode="before")
    @classmethod
    def validate_estimated_time(cls, v: Any) -> int | None:
        """Estimated time is an optional positive number of minutes."""
        if v is None or v == "" or v == 0:
            return None
        if isinstance(v, bool):
            raise ValueError("Estimated time must be a positive number of minutes")
        try:
            minutes = int(str(v).strip())
        except ValueError:
            raise ValueError("Estimated time must be a positive number of minutes") from None
        if minutes < 0:
            raise ValueError("Estimated time must be a positive number of minutes")
        return minutes or None

    @field_validator("ingredients", mode="before")
    @classmethod
    def validate_ingredients(cls, v: Any) -> list[str]:
        """Ingredients must be a list of strings; missing means empty."""
        if v is None:
            return []
        if not isinstance(v, list) or not all(isinstance(i, str) for i in v):
            raise ValueError("Ingredients must be a list of strings")
        return v

    @field_validator("category_id", mode="before")
    @classmethod
    def validate_category_id(cls, v: Any) -> Any:
        """An item must be placed in a category."""
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("Category is required")
        return v


class ItemFieldsPatch(BaseModel):
    """Quick toggles that skip the full item validation set."""

    model_config = ConfigDict(extra="forbid")

    is_available: bool | None = None
    sort_order: int | None = None
    display_order: int | None = None


class Item(BaseModel):
    """Menu item. ``ingredients`` is always a list here, never serialized text."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    menu_id: str
    category_id: str | None = None
    category_name: str = UNCATEGORIZED_NAME
    name: str
    description: str | None = None
    price: Decimal
    estimated_time: int | None = None
    ingredients: list[str] = Field(default_factory=list)
    image_url: str | None = None
    image_file_id: str | None = None
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    is_spicy: bool = False
    is_available: bool = True
    sort_order: int = 0
    display_order: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: Any) -> "Item":
        """Build an Item from a storage record, resolving the category name.

        Args:
            record: Item record with an optional loaded ``category`` relationship

        Returns:
            Item: Parsed model instance
        """
        item = cls.model_validate(record)
        category = getattr(record, "category", None)
        if category is not None:
            item.category_name = category.name
        return item


# Public projection


class PublicMenuInfo(BaseModel):
    """Menu header with the restaurant fields shown to visitors."""

    id: str
    name: str
    description: str | None = None
    slug: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    restaurant_id: str
    restaurant_name: str
    restaurant_address: str | None = None
    restaurant_phone: str | None = None
    restaurant_email: str | None = None
    restaurant_logo_url: str | None = None
    restaurant_color_theme: str | None = None
    restaurant_cuisine_type: str | None = None
    restaurant_description: str | None = None
    restaurant_google_rating: str | None = None
    restaurant_google_business_url: str | None = None


class PublicCategory(BaseModel):
    """Category with its visible items, in display order."""

    id: str
    menu_id: str
    name: str
    description: str | None = None
    sort_order: int = 0
    display_order: int = 0
    is_active: bool = True
    items: list[Item] = Field(default_factory=list)


class PublicMenu(BaseModel):
    """Customer-facing menu tree."""

    menu: PublicMenuInfo
    categories: list[PublicCategory]
    total_items: int
    total_categories: int


# Dashboard and QR codes


class RestaurantSummary(BaseModel):
    """Restaurant fields shown on the dashboard."""

    model_config = ConfigDict(from_attributes=True)

    name: str
    address: str | None = None
    email: str | None = None
    phone: str | None = None
    subscription_tier: str = "FREE"
    google_rating: str | None = None
    cuisine_type: str | None = None
    is_active: bool = True


class DashboardSummary(BaseModel):
    """Counts for the owner dashboard."""

    restaurant: RestaurantSummary | None = None
    menu_count: int = 0
    published_menu_count: int = 0
    menu_item_count: int = 0


class ActivityType(str, Enum):
    """Kind of record an activity entry refers to."""

    MENU = "menu"
    MENU_ITEM = "menu-item"


class Activity(BaseModel):
    """One entry of the dashboard's recent activity feed."""

    id: str = Field(..., description="Entry id, e.g. menu-<menu id>")
    text: str = Field(..., description="e.g. \"Menu 'Lunch' updated\"")
    time: str = Field(..., description="Relative time, e.g. 5m ago")
    type: ActivityType
    timestamp: datetime


class QRCodeEntry(BaseModel):
    """Public URL for one published menu."""

    id: str
    menu_name: str
    menu_slug: str
    restaurant_name: str
    restaurant_id: str
    menu_url: str


class QRCodeListing(BaseModel):
    """QR code entries for every published menu of the caller's restaurant."""

    restaurant: RestaurantSummary
    qr_codes: list[QRCodeEntry]
