"""Catalog service: restaurants, menus, categories and items.

Every owner-facing operation walks the ownership chain before touching data:
the caller's restaurant, then the menu inside that restaurant, then the
category or item inside that menu. Any broken link raises NotFoundError, so
another tenant's ids are indistinguishable from ids that do not exist.
"""

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from menu_catalog_service.exceptions import ConflictError, InvalidInputError, NotFoundError
from menu_catalog_service.models.catalog_models import (
    Activity,
    ActivityType,
    Category,
    CategoryCreate,
    CategoryDeletion,
    CategoryPatch,
    DashboardSummary,
    Item,
    ItemCreate,
    ItemFieldsPatch,
    Menu,
    MenuCreate,
    MenuPatch,
    PublicMenu,
    RequestContext,
    Restaurant,
    RestaurantCreate,
    RestaurantPatch,
    RestaurantSummary,
    parse_input,
)
from menu_catalog_service.observability import traced
from menu_catalog_service.observability.metrics import (
    record_catalog_mutation,
    record_public_menu_view,
)
from menu_catalog_service.repositories.catalog_repositories import (
    CategoryRepository,
    ItemRepository,
    MenuRepository,
    OwnerRepository,
    RestaurantRepository,
)
from menu_catalog_service.repositories.database import Database
from menu_catalog_service.repositories.tables import (
    CategoryRecord,
    ItemRecord,
    MenuRecord,
    RestaurantRecord,
    utc_now,
)
from menu_catalog_service.services.public_menu import build_public_menu

logger = logging.getLogger(__name__)

SLUG_SUFFIX_LENGTH = 8
_SLUG_STRIP = re.compile(r"[^\w\s-]", re.ASCII)
_SLUG_SEPARATORS = re.compile(r"[\s_-]+", re.ASCII)

RESTAURANT_REQUIRED_FIELDS = ("name", "color_theme", "is_active")
MENU_REQUIRED_FIELDS = ("name", "slug", "is_published", "is_active", "display_order")
CATEGORY_REQUIRED_FIELDS = ("name", "is_active", "sort_order", "display_order")
ITEM_PATCH_REQUIRED_FIELDS = ("is_available", "sort_order", "display_order")

RECENT_MENU_LIMIT = 3
RECENT_ITEM_LIMIT = 2


def slugify(text: str) -> str:
    """Turn a name into a URL slug: lower-case words joined by hyphens."""
    slug = _SLUG_STRIP.sub("", text.lower().strip())
    slug = _SLUG_SEPARATORS.sub("-", slug)
    return slug.strip("-")


def derive_menu_slug(name: str, restaurant_id: str) -> str:
    """Slug for a menu that was created without one.

    The last characters of the restaurant id are appended so two restaurants
    can both have a "Lunch" menu.

    Args:
        name: Menu name
        restaurant_id: Id of the owning restaurant

    Returns:
        str: e.g. ``"lunch-specials-1a2b3c4d"``
    """
    base = slugify(name) or "menu"
    return f"{base}-{restaurant_id[-SLUG_SUFFIX_LENGTH:]}"


def apply_changes(record: Any, changes: Mapping[str, Any], required: Iterable[str] = ()) -> None:
    """Copy provided fields onto a record.

    Args:
        record: Storage record to update
        changes: Field values the caller actually sent
        required: Fields that may be changed but never cleared

    Raises:
        InvalidInputError: If a required field is explicitly set to null
    """
    required = set(required)
    for field, value in changes.items():
        if value is None and field in required:
            raise InvalidInputError(f"{field} cannot be null", field=field)
    for field, value in changes.items():
        setattr(record, field, value)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to timestamps read back without a zone (e.g. from SQLite)."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def format_time_ago(moment: datetime, now: datetime) -> str:
    """Short relative time such as ``"42s ago"``, ``"5m ago"``, ``"3h ago"`` or ``"2d ago"``."""
    seconds = max(int((as_utc(now) - as_utc(moment)).total_seconds()), 0)
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


class CatalogService:
    """Owner-facing catalog operations plus the public menu read."""

    def __init__(self, database: Database, clock: Callable[[], datetime] = utc_now) -> None:
        """Initialize the catalog service.

        Args:
            database: Database providing one transaction per operation
            clock: Source of the current time
        """
        self.database = database
        self.clock = clock

    # Ownership chain

    def _resolve_restaurant(self, session: Session, context: RequestContext) -> RestaurantRecord:
        restaurant = RestaurantRepository(session).get_by_owner(context.owner_id)
        if restaurant is None:
            raise NotFoundError("Restaurant not found")
        return restaurant

    def _resolve_menu(self, session: Session, context: RequestContext, menu_id: str) -> MenuRecord:
        restaurant = self._resolve_restaurant(session, context)
        menu = MenuRepository(session).get_for_restaurant(menu_id, restaurant.id)
        if menu is None:
            raise NotFoundError("Menu not found")
        return menu

    def _resolve_category(self, session: Session, menu: MenuRecord, category_id: str) -> CategoryRecord:
        category = CategoryRepository(session).get_for_menu(category_id, menu.id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def _resolve_item(self, session: Session, menu: MenuRecord, item_id: str) -> ItemRecord:
        item = ItemRepository(session).get_for_menu(item_id, menu.id)
        if item is None:
            raise NotFoundError("Menu item not found")
        return item

    # Restaurant

    @traced("catalog.create_restaurant")
    def create_restaurant(
        self, context: RequestContext, data: RestaurantCreate | Mapping[str, Any]
    ) -> Restaurant:
        """Onboard the caller's restaurant.

        Args:
            context: Request context of the caller
            data: Restaurant profile

        Returns:
            Restaurant: The created restaurant

        Raises:
            ConflictError: If the caller already has a restaurant
            InvalidInputError: If a field fails validation
        """
        data = parse_input(RestaurantCreate, data)

        with self.database.transaction("create_restaurant", owner_id=context.owner_id) as session:
            owner = OwnerRepository(session).ensure(context.identity)
            restaurants = RestaurantRepository(session)

            if restaurants.get_by_owner(owner.id) is not None:
                raise ConflictError("Restaurant already exists for this user")

            record = restaurants.add(RestaurantRecord(owner_id=owner.id, **data.model_dump()))
            owner.has_restaurant = True
            session.flush()
            restaurant = Restaurant.model_validate(record)

        record_catalog_mutation("restaurant", "create")
        logger.info(f"Restaurant {restaurant.id} created for owner {context.owner_id}")
        return restaurant

    @traced("catalog.get_restaurant")
    def get_restaurant(self, context: RequestContext) -> Restaurant:
        """Get the caller's restaurant.

        Raises:
            NotFoundError: If the caller has not onboarded yet
        """
        with self.database.transaction("get_restaurant", owner_id=context.owner_id) as session:
            return Restaurant.model_validate(self._resolve_restaurant(session, context))

    @traced("catalog.update_restaurant")
    def update_restaurant(
        self, context: RequestContext, patch: RestaurantPatch | Mapping[str, Any]
    ) -> Restaurant:
        """Apply a partial update to the caller's restaurant.

        Setting ``is_active`` to false hides every menu of the restaurant from
        the public projection without deleting anything.
        """
        patch = parse_input(RestaurantPatch, patch)
        changes = patch.model_dump(exclude_unset=True)

        with self.database.transaction("update_restaurant", owner_id=context.owner_id) as session:
            record = self._resolve_restaurant(session, context)
            apply_changes(record, changes, RESTAURANT_REQUIRED_FIELDS)
            session.flush()
            restaurant = Restaurant.model_validate(record)

        record_catalog_mutation("restaurant", "update")
        logger.info(f"Restaurant {restaurant.id} updated: {sorted(changes)}")
        return restaurant

    def get_restaurant_status(self, context: RequestContext) -> bool:
        """Whether the caller has completed onboarding."""
        with self.database.transaction("get_restaurant_status", owner_id=context.owner_id) as session:
            owner = OwnerRepository(session).get(context.owner_id)
            return bool(owner and owner.has_restaurant)

    # Menus

    @traced("catalog.list_menus")
    def list_menus(self, context: RequestContext) -> list[Menu]:
        """List the caller's menus by display order, then creation time."""
        with self.database.transaction("list_menus", owner_id=context.owner_id) as session:
            restaurant = self._resolve_restaurant(session, context)
            return [Menu.model_validate(m) for m in MenuRepository(session).list_for_restaurant(restaurant.id)]

    @traced("catalog.get_menu")
    def get_menu(self, context: RequestContext, menu_id: str) -> Menu:
        """Get one of the caller's menus."""
        with self.database.transaction("get_menu", owner_id=context.owner_id, menu_id=menu_id) as session:
            return Menu.model_validate(self._resolve_menu(session, context, menu_id))

    @traced("catalog.create_menu")
    def create_menu(self, context: RequestContext, data: MenuCreate | Mapping[str, Any]) -> Menu:
        """Create a menu in the caller's restaurant.

        A slug is derived from the name when none is given. Slugs are unique
        across all restaurants.

        Args:
            context: Request context of the caller
            data: Menu fields

        Returns:
            Menu: The created menu

        Raises:
            NotFoundError: If the caller has no restaurant
            ConflictError: If the slug is already taken
        """
        data = parse_input(MenuCreate, data)

        with self.database.transaction("create_menu", owner_id=context.owner_id) as session:
            restaurant = self._resolve_restaurant(session, context)
            menus = MenuRepository(session)

            slug = data.slug or derive_menu_slug(data.name, restaurant.id)
            if menus.slug_exists(slug):
                raise ConflictError("A menu with this slug already exists")

            now = self.clock()
            record = menus.add(
                MenuRecord(
                    restaurant_id=restaurant.id,
                    name=data.name,
                    description=data.description,
                    slug=slug,
                    is_published=data.is_published,
                    is_active=data.is_active,
                    display_order=data.display_order,
                    created_at=now,
                    updated_at=now,
                )
            )
            menu = Menu.model_validate(record)

        record_catalog_mutation("menu", "create")
        logger.info(f"Menu {menu.id} ({menu.slug}) created for restaurant {menu.restaurant_id}")
        return menu

    @traced("catalog.update_menu")
    def update_menu(
        self, context: RequestContext, menu_id: str, patch: MenuPatch | Mapping[str, Any]
    ) -> Menu:
        """Apply a partial update to a menu.

        Raises:
            NotFoundError: If the menu is not the caller's
            ConflictError: If a changed slug is used by another menu
        """
        patch = parse_input(MenuPatch, patch)
        changes = patch.model_dump(exclude_unset=True)

        with self.database.transaction("update_menu", owner_id=context.owner_id, menu_id=menu_id) as session:
            record = self._resolve_menu(session, context, menu_id)
            menus = MenuRepository(session)

            new_slug = changes.get("slug")
            if new_slug is not None and new_slug != record.slug:
                if menus.slug_exists(new_slug, exclude_menu_id=record.id):
                    raise ConflictError("A menu with this slug already exists")

            was_published = record.is_published
            apply_changes(record, changes, MENU_REQUIRED_FIELDS)
            menus.save(record)
            menu = Menu.model_validate(record)

        record_catalog_mutation("menu", "update")
        if menu.is_published != was_published:
            state = "published" if menu.is_published else "unpublished"
            logger.info(f"Menu {menu.id} {state}")
        return menu

    @traced("catalog.delete_menu")
    def delete_menu(self, context: RequestContext, menu_id: str) -> None:
        """Delete a menu together with all of its categories and items."""
        with self.database.transaction("delete_menu", owner_id=context.owner_id, menu_id=menu_id) as session:
            record = self._resolve_menu(session, context, menu_id)
            MenuRepository(session).delete(record)

        record_catalog_mutation("menu", "delete")
        logger.info(f"Menu {menu_id} deleted with its categories and items")

    # Categories

    @traced("catalog.list_categories")
    def list_categories(self, context: RequestContext, menu_id: str) -> list[Category]:
        """List a menu's categories by sort order, then creation time."""
        with self.database.transaction("list_categories", owner_id=context.owner_id, menu_id=menu_id) as session:
            menu = self._resolve_menu(session, context, menu_id)
            return [Category.model_validate(c) for c in CategoryRepository(session).list_for_menu(menu.id)]

    @traced("catalog.get_category")
    def get_category(self, context: RequestContext, menu_id: str, category_id: str) -> Category:
        """Get one category of one of the caller's menus."""
        with self.database.transaction(
            "get_category", owner_id=context.owner_id, menu_id=menu_id, category_id=category_id
        ) as session:
            menu = self._resolve_menu(session, context, menu_id)
            return Category.model_validate(self._resolve_category(session, menu, category_id))

    @traced("catalog.create_category")
    def create_category(
        self, context: RequestContext, menu_id: str, data: CategoryCreate | Mapping[str, Any]
    ) -> Category:
        """Create a category at the end of the menu's sort order.

        Args:
            context: Request context of the caller
            menu_id: Menu to add the category to
            data: Category fields

        Returns:
            Category: The created category with ``sort_order`` = current max + 1
        """
        data = parse_input(CategoryCreate, data)

        with self.database.transaction("create_category", owner_id=context.owner_id, menu_id=menu_id) as session:
            menu = self._resolve_menu(session, context, menu_id)
            categories = CategoryRepository(session)

            record = categories.add(
                CategoryRecord(
                    menu_id=menu.id,
                    name=data.name,
                    description=data.description,
                    is_active=data.is_active,
                    display_order=data.display_order,
                    sort_order=categories.next_sort_order(menu.id),
                )
            )
            category = Category.model_validate(record)

        record_catalog_mutation("category", "create")
        logger.info(f"Category {category.id} created in menu {menu_id} at position {category.sort_order}")
        return category

    @traced("catalog.update_category")
    def update_category(
        self,
        context: RequestContext,
        menu_id: str,
        category_id: str,
        patch: CategoryPatch | Mapping[str, Any],
    ) -> Category:
        """Apply a partial update to a category. The owning menu cannot change."""
        patch = parse_input(CategoryPatch, patch)
        changes = patch.model_dump(exclude_unset=True)

        with self.database.transaction(
            "update_category", owner_id=context.owner_id, menu_id=menu_id, category_id=category_id
        ) as session:
            menu = self._resolve_menu(session, context, menu_id)
            record = self._resolve_category(session, menu, category_id)
            apply_changes(record, changes, CATEGORY_REQUIRED_FIELDS)
            session.flush()
            category = Category.model_validate(record)

        record_catalog_mutation("category", "update")
        return category

    @traced("catalog.delete_category")
    def delete_category(self, context: RequestContext, menu_id: str, category_id: str) -> CategoryDeletion:
        """Delete a category and every item in it, atomically.

        Returns:
            CategoryDeletion: Count and ids of the deleted items
        """
        with self.database.transaction(
            "delete_category", owner_id=context.owner_id, menu_id=menu_id, category_id=category_id
        ) as session:
            menu = self._resolve_menu(session, context, menu_id)
            record = self._resolve_category(session, menu, category_id)

            deleted_ids = ItemRepository(session).delete_for_category(record.id, menu.id)
            CategoryRepository(session).delete(record)

        record_catalog_mutation("category", "delete")
        logger.info(f"Category {category_id} deleted from menu {menu_id} with {len(deleted_ids)} items")
        return CategoryDeletion(deleted_items_count=len(deleted_ids), deleted_items=deleted_ids)

    # Items

    @traced("catalog.list_items")
    def list_items(self, context: RequestContext, menu_id: str) -> list[Item]:
        """List a menu's items grouped by category order; uncategorized items last."""
        with self.database.transaction("list_items", owner_id=context.owner_id, menu_id=menu_id) as session:
            menu = self._resolve_menu(session, context, menu_id)
            return [Item.from_record(i) for i in ItemRepository(session).list_for_menu(menu.id)]

    @traced("catalog.get_item")
    def get_item(self, context: RequestContext, menu_id: str, item_id: str) -> Item:
        """Get one item of one of the caller's menus."""
        with self.database.transaction(
            "get_item", owner_id=context.owner_id, menu_id=menu_id, item_id=item_id
        ) as session:
            menu = self._resolve_menu(session, context, menu_id)
            return Item.from_record(self._resolve_item(session, menu, item_id))

    @traced("catalog.create_item")
    def create_item(self, context: RequestContext, menu_id: str, data: ItemCreate | Mapping[str, Any]) -> Item:
        """Create an item in a category of the menu.

        The item is placed after every existing item of the menu: both
        ``sort_order`` and ``display_order`` start at the menu-wide max + 1.

        Args:
            context: Request context of the caller
            menu_id: Menu to add the item to
            data: Item fields; ``category_id`` must belong to the same menu

        Returns:
            Item: The created item

        Raises:
            InvalidInputError: If a field fails validation
            NotFoundError: If the menu or category is not the caller's
        """
        data = parse_input(ItemCreate, data)

        with self.database.transaction("create_item", owner_id=context.owner_id, menu_id=menu_id) as session:
            menu = self._resolve_menu(session, context, menu_id)
            category = self._resolve_category(session, menu, data.category_id)
            items = ItemRepository(session)

            position = items.next_sort_order(menu.id)
            now = self.clock()
            record = items.add(
                ItemRecord(
                    menu_id=menu.id,
                    category=category,
                    name=data.name,
                    description=data.description,
                    price=data.price,
                    estimated_time=data.estimated_time,
                    ingredients=data.ingredients,
                    image_url=data.image_url,
                    image_file_id=data.image_file_id,
                    is_vegetarian=data.is_vegetarian,
                    is_vegan=data.is_vegan,
                    is_gluten_free=data.is_gluten_free,
                    is_spicy=data.is_spicy,
                    is_available=data.is_available,
                    sort_order=position,
                    display_order=position,
                    created_at=now,
                    updated_at=now,
                )
            )
            item = Item.from_record(record)

        record_catalog_mutation("item", "create")
        logger.info(f"Item {item.id} created in menu {menu_id}, category {item.category_id}")
        return item

    @traced("catalog.update_item")
    def update_item(
        self, context: RequestContext, menu_id: str, item_id: str, data: ItemCreate | Mapping[str, Any]
    ) -> Item:
        """Replace an item's fields, keeping its id and position."""
        data = parse_input(ItemCreate, data)

        with self.database.transaction(
            "update_item", owner_id=context.owner_id, menu_id=menu_id, item_id=item_id
        ) as session:
            menu = self._resolve_menu(session, context, menu_id)
            record = self._resolve_item(session, menu, item_id)
            category = self._resolve_category(session, menu, data.category_id)

            apply_changes(record, data.model_dump(exclude={"category_id"}))
            record.category = category
            session.flush()
            item = Item.from_record(record)

        record_catalog_mutation("item", "update")
        return item

    @traced("catalog.patch_item_fields")
    def patch_item_fields(
        self,
        context: RequestContext,
        menu_id: str,
        item_id: str,
        patch: ItemFieldsPatch | Mapping[str, Any],
    ) -> Item:
        """Toggle availability or reorder an item without revalidating the rest."""
        patch = parse_input(ItemFieldsPatch, patch)
        changes = patch.model_dump(exclude_unset=True)

        with self.database.transaction(
            "patch_item_fields", owner_id=context.owner_id, menu_id=menu_id, item_id=item_id
        ) as session:
            menu = self._resolve_menu(session, context, menu_id)
            record = self._resolve_item(session, menu, item_id)
            apply_changes(record, changes, ITEM_PATCH_REQUIRED_FIELDS)
            session.flush()
            item = Item.from_record(record)

        record_catalog_mutation("item", "patch")
        return item

    @traced("catalog.delete_item")
    def delete_item(self, context: RequestContext, menu_id: str, item_id: str) -> None:
        """Delete one item."""
        with self.database.transaction(
            "delete_item", owner_id=context.owner_id, menu_id=menu_id, item_id=item_id
        ) as session:
            menu = self._resolve_menu(session, context, menu_id)
            ItemRepository(session).delete(self._resolve_item(session, menu, item_id))

        record_catalog_mutation("item", "delete")
        logger.info(f"Item {item_id} deleted from menu {menu_id}")

    # Dashboard and QR codes

    @traced("catalog.get_dashboard_summary")
    def get_dashboard_summary(self, context: RequestContext) -> DashboardSummary:
        """Restaurant summary and menu/item counts for the dashboard."""
        with self.database.transaction("get_dashboard_summary", owner_id=context.owner_id) as session:
            restaurant = RestaurantRepository(session).get_by_owner(context.owner_id)
            if restaurant is None:
                return DashboardSummary()

            menus = MenuRepository(session)
            return DashboardSummary(
                restaurant=RestaurantSummary.model_validate(restaurant),
                menu_count=menus.count_for_restaurant(restaurant.id),
                published_menu_count=menus.count_for_restaurant(restaurant.id, published_only=True),
                menu_item_count=ItemRepository(session).count_for_restaurant(restaurant.id),
            )

    @traced("catalog.get_dashboard_activity")
    def get_dashboard_activity(self, context: RequestContext) -> list[Activity]:
        """Recent changes for the dashboard feed.

        Covers the most recently updated menus and the most recently updated
        items of those menus. A record whose ``updated_at`` still equals its
        ``created_at`` is reported as new.

        Args:
            context: Request context of the caller

        Returns:
            list[Activity]: Newest first; empty if the caller has no restaurant
        """
        now = self.clock()
        activities: list[Activity] = []

        with self.database.transaction("get_dashboard_activity", owner_id=context.owner_id) as session:
            restaurant = RestaurantRepository(session).get_by_owner(context.owner_id)
            if restaurant is None:
                return []

            menus = MenuRepository(session).list_recently_updated(restaurant.id, RECENT_MENU_LIMIT)
            items = ItemRepository(session).list_recently_updated([m.id for m in menus], RECENT_ITEM_LIMIT)

            for menu in menus:
                verb = "created" if menu.created_at == menu.updated_at else "updated"
                activities.append(
                    Activity(
                        id=f"menu-{menu.id}",
                        text=f"Menu '{menu.name}' {verb}",
                        time=format_time_ago(menu.updated_at, now),
                        type=ActivityType.MENU,
                        timestamp=as_utc(menu.updated_at),
                    )
                )
            for item in items:
                verb = "added" if item.created_at == item.updated_at else "updated"
                activities.append(
                    Activity(
                        id=f"item-{item.id}",
                        text=f"Menu item '{item.name}' {verb}",
                        time=format_time_ago(item.updated_at, now),
                        type=ActivityType.MENU_ITEM,
                        timestamp=as_utc(item.updated_at),
                    )
                )

        activities.sort(key=lambda activity: activity.timestamp, reverse=True)
        return activities

    @traced("catalog.list_published_menus")
    def list_published_menus(self, context: RequestContext) -> tuple[Restaurant, list[Menu]]:
        """The caller's restaurant and its published, active menus."""
        with self.database.transaction("list_published_menus", owner_id=context.owner_id) as session:
            restaurant = self._resolve_restaurant(session, context)
            menus = MenuRepository(session).list_published_for_restaurant(restaurant.id)
            return Restaurant.model_validate(restaurant), [Menu.model_validate(m) for m in menus]

    # Public projection

    @traced("catalog.get_public_menu")
    def get_public_menu(self, menu_id: str) -> PublicMenu:
        """Customer-facing menu; no authentication.

        A menu is visible only when it is published and active and its
        restaurant is active. Otherwise it is reported exactly like a menu that
        does not exist.

        Raises:
            NotFoundError: If the menu does not exist or is not visible
        """
        with self.database.transaction("get_public_menu", menu_id=menu_id) as session:
            record = MenuRepository(session).get_public(menu_id)
            if record is None:
                record_public_menu_view("not_found")
                raise NotFoundError("Menu not found or not published")

            categories = CategoryRepository(session).list_active_for_menu(record.id)
            items = ItemRepository(session).list_available_for_menu(record.id)

            public_menu = build_public_menu(
                Menu.model_validate(record),
                Restaurant.model_validate(record.restaurant),
                [Category.model_validate(c) for c in categories],
                [Item.from_record(i) for i in items],
            )

        record_public_menu_view("served")
        return public_menu
