"""Customer-facing projection of a published menu.

``build_public_menu`` is a pure function: it takes already-loaded rows and
returns the nested menu tree, so it can be tested without a database.
"""

from collections import defaultdict
from typing import Protocol

from menu_catalog_service.models.catalog_models import (
    Category,
    Item,
    Menu,
    PublicCategory,
    PublicMenu,
    PublicMenuInfo,
    Restaurant,
)

OTHER_ITEMS_ID = "uncategorized"
OTHER_ITEMS_NAME = "Other Items"
OTHER_ITEMS_ORDER = 999


class Ordered(Protocol):
    display_order: int
    sort_order: int
    name: str


def display_sort_key(entry: Ordered) -> tuple[int, int, str]:
    """Public ordering: display order, then sort order, then name."""
    return (entry.display_order, entry.sort_order, entry.name)


def build_menu_info(menu: Menu, restaurant: Restaurant) -> PublicMenuInfo:
    """Menu header enriched with the restaurant's public fields."""
    return PublicMenuInfo(
        id=menu.id,
        name=menu.name,
        description=menu.description,
        slug=menu.slug,
        created_at=menu.created_at,
        updated_at=menu.updated_at,
        restaurant_id=restaurant.id,
        restaurant_name=restaurant.name,
        restaurant_address=restaurant.address,
        restaurant_phone=restaurant.phone,
        restaurant_email=restaurant.email,
        restaurant_logo_url=restaurant.logo_url,
        restaurant_color_theme=restaurant.color_theme,
        restaurant_cuisine_type=restaurant.cuisine_type,
        restaurant_description=restaurant.description,
        restaurant_google_rating=restaurant.google_rating,
        restaurant_google_business_url=restaurant.google_business_url,
    )


def build_public_menu(
    menu: Menu,
    restaurant: Restaurant,
    categories: list[Category],
    items: list[Item],
) -> PublicMenu:
    """Group a menu's visible items under its visible categories.

    Items are bucketed by category in a single pass. Available items whose
    category is missing or inactive are collected into a trailing
    "Other Items" category, which only appears when it has items.

    Args:
        menu: The published menu
        restaurant: Owning restaurant
        categories: Categories of the menu (inactive ones are skipped)
        items: Items of the menu (unavailable ones are skipped)

    Returns:
        PublicMenu: Nested menu tree with totals
    """
    active_categories = sorted((c for c in categories if c.is_active), key=display_sort_key)
    active_ids = {c.id for c in active_categories}

    buckets: dict[str, list[Item]] = defaultdict(list)
    other_items: list[Item] = []
    for item in items:
        if not item.is_available:
            continue
        if item.category_id in active_ids:
            buckets[item.category_id].append(item)
        else:
            other_items.append(item)

    public_categories = [
        PublicCategory(
            id=category.id,
            menu_id=category.menu_id,
            name=category.name,
            description=category.description,
            sort_order=category.sort_order,
            display_order=category.display_order,
            is_active=category.is_active,
            items=sorted(buckets.get(category.id, []), key=display_sort_key),
        )
        for category in active_categories
    ]

    if other_items:
        public_categories.append(
            PublicCategory(
                id=OTHER_ITEMS_ID,
                menu_id=menu.id,
                name=OTHER_ITEMS_NAME,
                sort_order=OTHER_ITEMS_ORDER,
                display_order=OTHER_ITEMS_ORDER,
                items=sorted(other_items, key=display_sort_key),
            )
        )

    return PublicMenu(
        menu=build_menu_info(menu, restaurant),
        categories=public_categories,
        total_items=sum(len(category.items) for category in public_categories),
        total_categories=len(active_categories),
    )
