"""Repository classes for catalog records.

Repositories are bound to the session of the current transaction and never
commit on their own. Lookups that cross the ownership chain always filter by
the parent id as well, so a record belonging to another tenant is simply not
found.
"""

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, contains_eager, joinedload

from menu_catalog_service.exceptions import ConflictError
from menu_catalog_service.models.catalog_models import Identity
from menu_catalog_service.repositories.tables import (
    CategoryRecord,
    ItemRecord,
    MenuRecord,
    OwnerRecord,
    RestaurantRecord,
)

logger = logging.getLogger(__name__)


class SessionRepository:
    """Base class holding the session of the surrounding transaction."""

    def __init__(self, session: Session) -> None:
        """Initialize repository.

        Args:
            session: Session bound to the current transaction
        """
        self.session = session

    def delete(self, record: object) -> None:
        """Delete a record and flush so database cascades run immediately."""
        self.session.delete(record)
        self.session.flush()


class OwnerRepository(SessionRepository):
    """Owners mirrored from the identity provider."""

    def get(self, owner_id: str) -> OwnerRecord | None:
        """Get an owner by identity provider user id."""
        return self.session.get(OwnerRecord, owner_id)

    def ensure(self, identity: Identity) -> OwnerRecord:
        """Return the owner for an identity, creating it on first use.

        Args:
            identity: Authenticated caller

        Returns:
            OwnerRecord: Existing or newly created owner
        """
        owner = self.get(identity.user_id)
        if owner is not None:
            return owner

        owner = OwnerRecord(
            id=identity.user_id,
            email=identity.email,
            name=identity.name,
            email_verified=identity.email_verified,
            has_restaurant=False,
        )
        self.session.add(owner)
        self.session.flush()

        logger.info(f"Created owner record for user {identity.user_id}")
        return owner

    def get_by_email(self, email: str) -> OwnerRecord | None:
        """Find an owner by account email (case-insensitive)."""
        stmt = select(OwnerRecord).where(func.lower(OwnerRecord.email) == email.lower())
        return self.session.scalars(stmt).first()


class RestaurantRepository(SessionRepository):
    """Restaurant profiles, at most one per owner."""

    def get_by_owner(self, owner_id: str) -> RestaurantRecord | None:
        """Get the restaurant owned by an owner.

        Args:
            owner_id: Identity provider user id

        Returns:
            RestaurantRecord if the owner has one, None otherwise
        """
        stmt = (
            select(RestaurantRecord)
            .where(RestaurantRecord.owner_id == owner_id)
            .order_by(RestaurantRecord.created_at)
        )
        return self.session.scalars(stmt).first()

    def add(self, restaurant: RestaurantRecord) -> RestaurantRecord:
        """Insert a restaurant and flush to assign its id."""
        self.session.add(restaurant)
        self.session.flush()
        return restaurant


class MenuRepository(SessionRepository):
    """Menus of a restaurant."""

    def get_for_restaurant(self, menu_id: str, restaurant_id: str) -> MenuRecord | None:
        """Get a menu only if it belongs to the given restaurant."""
        stmt = select(MenuRecord).where(
            MenuRecord.id == menu_id,
            MenuRecord.restaurant_id == restaurant_id,
        )
        return self.session.scalars(stmt).first()

    def list_for_restaurant(self, restaurant_id: str) -> list[MenuRecord]:
        """List a restaurant's menus by display order, then creation time."""
        stmt = (
            select(MenuRecord)
            .where(MenuRecord.restaurant_id == restaurant_id)
            .order_by(MenuRecord.display_order, MenuRecord.created_at)
        )
        return list(self.session.scalars(stmt))

    def list_published_for_restaurant(self, restaurant_id: str) -> list[MenuRecord]:
        """List published, active menus of a restaurant."""
        stmt = (
            select(MenuRecord)
            .where(
                MenuRecord.restaurant_id == restaurant_id,
                MenuRecord.is_published.is_(True),
                MenuRecord.is_active.is_(True),
            )
            .order_by(MenuRecord.display_order, MenuRecord.created_at)
        )
        return list(self.session.scalars(stmt))

    def slug_exists(self, slug: str, exclude_menu_id: str | None = None) -> bool:
        """Check whether a slug is taken by any menu of any restaurant.

        Args:
            slug: Slug to look up
            exclude_menu_id: Menu to ignore (the one being updated)

        Returns:
            bool: True if another menu already uses the slug
        """
        stmt = select(MenuRecord.id).where(MenuRecord.slug == slug)
        if exclude_menu_id is not None:
            stmt = stmt.where(MenuRecord.id != exclude_menu_id)
        return self.session.scalars(stmt.limit(1)).first() is not None

    def add(self, menu: MenuRecord) -> MenuRecord:
        """Insert a menu; a slug clash at the database maps to ConflictError."""
        self.session.add(menu)
        return self.save(menu)

    def save(self, menu: MenuRecord) -> MenuRecord:
        """Flush pending menu changes.

        Raises:
            ConflictError: If the unique slug constraint rejects the write
        """
        try:
            self.session.flush()
        except IntegrityError as e:
            logger.warning(f"Slug conflict writing menu {menu.id}: {e.orig}")
            raise ConflictError("A menu with this slug already exists") from e
        return menu

    def get_public(self, menu_id: str) -> MenuRecord | None:
        """Get a menu together with its restaurant if it passes the publication gate."""
        stmt = (
            select(MenuRecord)
            .join(MenuRecord.restaurant)
            .options(contains_eager(MenuRecord.restaurant))
            .where(
                MenuRecord.id == menu_id,
                MenuRecord.is_published.is_(True),
                MenuRecord.is_active.is_(True),
                RestaurantRecord.is_active.is_(True),
            )
        )
        return self.session.scalars(stmt).first()

    def count_for_restaurant(self, restaurant_id: str, published_only: bool = False) -> int:
        """Count a restaurant's menus."""
        stmt = select(func.count(MenuRecord.id)).where(MenuRecord.restaurant_id == restaurant_id)
        if published_only:
            stmt = stmt.where(MenuRecord.is_published.is_(True))
        return self.session.scalar(stmt) or 0

    def list_recently_updated(self, restaurant_id: str, limit: int) -> list[MenuRecord]:
        """List a restaurant's menus, most recently updated first."""
        stmt = (
            select(MenuRecord)
            .where(MenuRecord.restaurant_id == restaurant_id)
            .order_by(MenuRecord.updated_at.desc(), MenuRecord.created_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))


class CategoryRepository(SessionRepository):
    """Categories of a menu."""

    def get_for_menu(self, category_id: str, menu_id: str) -> CategoryRecord | None:
        """Get a category only if it belongs to the given menu."""
        stmt = select(CategoryRecord).where(
            CategoryRecord.id == category_id,
            CategoryRecord.menu_id == menu_id,
        )
        return self.session.scalars(stmt).first()

    def list_for_menu(self, menu_id: str) -> list[CategoryRecord]:
        """List categories by sort order, then creation time."""
        stmt = (
            select(CategoryRecord)
            .where(CategoryRecord.menu_id == menu_id)
            .order_by(CategoryRecord.sort_order, CategoryRecord.created_at)
        )
        return list(self.session.scalars(stmt))

    def list_active_for_menu(self, menu_id: str) -> list[CategoryRecord]:
        """List active categories of a menu (unordered)."""
        stmt = select(CategoryRecord).where(
            CategoryRecord.menu_id == menu_id,
            CategoryRecord.is_active.is_(True),
        )
        return list(self.session.scalars(stmt))

    def next_sort_order(self, menu_id: str) -> int:
        """Sort order for a new category: current maximum (0 if none) plus one."""
        current = self.session.scalar(
            select(func.max(CategoryRecord.sort_order)).where(CategoryRecord.menu_id == menu_id)
        )
        return (current or 0) + 1

    def add(self, category: CategoryRecord) -> CategoryRecord:
        """Insert a category and flush to assign its id."""
        self.session.add(category)
        self.session.flush()
        return category


class ItemRepository(SessionRepository):
    """Items of a menu."""

    def get_for_menu(self, item_id: str, menu_id: str) -> ItemRecord | None:
        """Get an item only if it belongs to the given menu."""
        stmt = (
            select(ItemRecord)
            .options(joinedload(ItemRecord.category))
            .where(ItemRecord.id == item_id, ItemRecord.menu_id == menu_id)
        )
        return self.session.scalars(stmt).first()

    def list_for_menu(self, menu_id: str) -> list[ItemRecord]:
        """List items by category sort order, item sort order, creation time.

        Items without a category sort last.
        """
        stmt = (
            select(ItemRecord)
            .outerjoin(ItemRecord.category)
            .options(contains_eager(ItemRecord.category))
            .where(ItemRecord.menu_id == menu_id)
            .order_by(
                CategoryRecord.sort_order.is_(None),
                CategoryRecord.sort_order,
                ItemRecord.sort_order,
                ItemRecord.created_at,
            )
        )
        return list(self.session.scalars(stmt).unique())

    def list_available_for_menu(self, menu_id: str) -> list[ItemRecord]:
        """List available items of a menu (unordered)."""
        stmt = select(ItemRecord).where(
            ItemRecord.menu_id == menu_id,
            ItemRecord.is_available.is_(True),
        )
        return list(self.session.scalars(stmt))

    def next_sort_order(self, menu_id: str) -> int:
        """Sort order for a new item: menu-wide maximum (0 if none) plus one."""
        current = self.session.scalar(
            select(func.max(ItemRecord.sort_order)).where(ItemRecord.menu_id == menu_id)
        )
        return (current or 0) + 1

    def add(self, item: ItemRecord) -> ItemRecord:
        """Insert an item and flush to assign its id."""
        self.session.add(item)
        self.session.flush()
        return item

    def delete_for_category(self, category_id: str, menu_id: str) -> list[str]:
        """Delete every item of a category within a menu.

        Args:
            category_id: Category whose items are removed
            menu_id: Menu the category belongs to

        Returns:
            list[str]: Ids of the deleted items
        """
        condition = (ItemRecord.category_id == category_id) & (ItemRecord.menu_id == menu_id)
        item_ids = list(self.session.scalars(select(ItemRecord.id).where(condition)))
        if item_ids:
            self.session.execute(
                delete(ItemRecord).where(condition).execution_options(synchronize_session="fetch")
            )
        return item_ids

    def count_for_restaurant(self, restaurant_id: str) -> int:
        """Count items across all menus of a restaurant."""
        stmt = (
            select(func.count(ItemRecord.id))
            .join(MenuRecord, ItemRecord.menu_id == MenuRecord.id)
            .where(MenuRecord.restaurant_id == restaurant_id)
        )
        return self.session.scalar(stmt) or 0

    def list_recently_updated(self, menu_ids: list[str], limit: int) -> list[ItemRecord]:
        """List items of the given menus, most recently updated first."""
        if not menu_ids:
            return []
        stmt = (
            select(ItemRecord)
            .where(ItemRecord.menu_id.in_(menu_ids))
            .order_by(ItemRecord.updated_at.desc(), ItemRecord.created_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))
