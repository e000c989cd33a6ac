"""SQLAlchemy table definitions for the catalog.

Menu -> Category -> Item deletion is enforced by the database through
``ON DELETE CASCADE`` foreign keys; the ORM relationships use
``passive_deletes`` so they never load children just to delete them.
Restaurants are never hard-deleted and do not cascade to menus.
"""

import json
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def new_id() -> str:
    """Generate a new primary key."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(UTC)


class OwnerRecord(Base):
    """Local mirror of an identity provider user, created on first use."""

    __tablename__ = "owners"

    id = Column(String(255), primary_key=True)
    email = Column(String(255), nullable=True, index=True)
    name = Column(String(255), nullable=True)
    image = Column(Text, nullable=True)
    image_file_id = Column(String(255), nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    email_verification_token = Column(String(64), nullable=True, index=True)
    has_restaurant = Column(Boolean, nullable=False, default=False)

    subscription_type = Column(String(20), nullable=True)
    subscription_status = Column(String(20), nullable=True)
    subscription_start_date = Column(DateTime(timezone=True), nullable=True)
    subscription_end_date = Column(DateTime(timezone=True), nullable=True)
    payment_customer_id = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)


class RestaurantRecord(Base):
    __tablename__ = "restaurants"

    id = Column(String(36), primary_key=True, default=new_id)
    owner_id = Column(String(255), ForeignKey("owners.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    phone = Column(String(32), nullable=True)
    email = Column(String(255), nullable=True)
    google_business_url = Column(Text, nullable=True)
    google_rating = Column(String(8), nullable=True)
    cuisine_type = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    logo_url = Column(Text, nullable=True)
    logo_file_id = Column(String(255), nullable=True)
    color_theme = Column(String(7), nullable=False, default="#000000")
    subscription_tier = Column(String(20), nullable=False, default="FREE")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)


class MenuRecord(Base):
    __tablename__ = "menus"

    id = Column(String(36), primary_key=True, default=new_id)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    slug = Column(String(255), nullable=False, unique=True)
    is_published = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    restaurant = relationship("RestaurantRecord")
    categories = relationship(
        "CategoryRecord", back_populates="menu", cascade="all, delete", passive_deletes=True
    )
    items = relationship(
        "ItemRecord", back_populates="menu", cascade="all, delete", passive_deletes=True
    )


class CategoryRecord(Base):
    __tablename__ = "menu_categories"

    id = Column(String(36), primary_key=True, default=new_id)
    menu_id = Column(
        String(36), ForeignKey("menus.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    menu = relationship("MenuRecord", back_populates="categories")
    items = relationship(
        "ItemRecord", back_populates="category", cascade="all, delete", passive_deletes=True
    )


class ItemRecord(Base):
    """Menu item row. Ingredients are kept as JSON text in the ``ingredients`` column."""

    __tablename__ = "menu_items"

    id = Column(String(36), primary_key=True, default=new_id)
    menu_id = Column(
        String(36), ForeignKey("menus.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id = Column(
        String(36),
        ForeignKey("menu_categories.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    estimated_time = Column(Integer, nullable=True)
    ingredients_json = Column("ingredients", Text, nullable=True)
    image_url = Column(Text, nullable=True)
    image_file_id = Column(String(255), nullable=True)
    is_vegetarian = Column(Boolean, nullable=False, default=False)
    is_vegan = Column(Boolean, nullable=False, default=False)
    is_gluten_free = Column(Boolean, nullable=False, default=False)
    is_spicy = Column(Boolean, nullable=False, default=False)
    is_available = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    menu = relationship("MenuRecord", back_populates="items")
    category = relationship("CategoryRecord", back_populates="items")

    @property
    def ingredients(self) -> list[str]:
        """Decoded ingredient list; empty when nothing is stored."""
        if not self.ingredients_json:
            return []
        decoded = json.loads(self.ingredients_json)
        return decoded if isinstance(decoded, list) else []

    @ingredients.setter
    def ingredients(self, value: list[str] | None) -> None:
        self.ingredients_json = json.dumps(list(value or []))


class PaymentRecord(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    owner_id = Column(String(255), ForeignKey("owners.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    status = Column(String(20), nullable=False, default="COMPLETED")
    order_id = Column(String(255), nullable=False)
    payment_id = Column(String(255), nullable=False, unique=True)
    plan_type = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
