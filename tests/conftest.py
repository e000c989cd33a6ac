"""Shared pytest fixtures and configuration for all tests."""

import os

# Entry-point modules build the real application at import time unless in test mode
os.environ.setdefault("ENVIRONMENT", "test")

from collections.abc import Iterator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from menu_catalog_service.models.catalog_models import Identity, RequestContext  # noqa: E402
from menu_catalog_service.repositories.database import Database  # noqa: E402
from menu_catalog_service.services.catalog_service import CatalogService  # noqa: E402


@pytest.fixture
def database() -> Iterator[Database]:
    """Fixture providing an empty in-memory SQLite database with foreign keys enabled."""
    db = Database(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    db.create_tables()
    yield db
    db.drop_tables()
    db.engine.dispose()


@pytest.fixture
def catalog_service(database: Database) -> CatalogService:
    """Fixture providing a catalog service backed by the in-memory database."""
    return CatalogService(database=database)


@pytest.fixture
def owner_context() -> RequestContext:
    """Fixture providing the request context of a restaurant owner."""
    return RequestContext(
        identity=Identity(
            user_id="user_owner_a1b2c3d4",
            email="owner@bistro.example",
            name="Olivia Owner",
            email_verified=True,
        )
    )


@pytest.fixture
def other_context() -> RequestContext:
    """Fixture providing the request context of a second, unrelated owner."""
    return RequestContext(
        identity=Identity(
            user_id="user_other_e5f6a7b8",
            email="other@diner.example",
            name="Oscar Other",
            email_verified=True,
        )
    )


@pytest.fixture
def restaurant_payload() -> dict:
    """Fixture providing a valid onboarding payload."""
    return {
        "name": "Blue Door Bistro",
        "address": "12 Harbour Road, Kochi",
        "phone": "+919876543210",
        "email": "hello@bluedoor.example",
        "google_rating": "4.5",
        "cuisine_type": "South Indian",
        "description": "Coastal food and filter coffee",
        "color_theme": "#1A2B3C",
    }
