"""Main application entry point for the menu catalog service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from menu_catalog_service.handlers.api_handler import create_app
from menu_catalog_service.observability import configure_logging, setup_observability
from menu_catalog_service.repositories.database import Database
from menu_catalog_service.services.account_service import AccountService
from menu_catalog_service.services.asset_storage import AssetStorage
from menu_catalog_service.services.billing_service import BillingService
from menu_catalog_service.services.catalog_service import CatalogService
from menu_catalog_service.services.email_service import EmailService
from menu_catalog_service.services.identity_client import IdentityClient
from menu_catalog_service.services.qr_code_service import QRCodeService

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./menu_catalog.db"
DEFAULT_PUBLIC_APP_URL = "http://localhost:3000"


def create_database() -> Database:
    """Create the database from DATABASE_URL and make sure tables exist.

    Returns:
        Database with an engine configured for the environment
    """
    url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    echo = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    engine_kwargs: dict[str, Any] = {}
    if url.startswith("sqlite"):
        # Requests are served from a thread pool
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    else:
        engine_kwargs["pool_pre_ping"] = True

    database = Database(url, echo=echo, **engine_kwargs)
    database.create_tables()
    return database


def get_s3_client() -> Any:
    """Create S3 client with appropriate configuration.

    Returns:
        Boto3 S3 client configured for environment
    """
    endpoint_url = os.getenv("S3_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        # Local S3-compatible storage (e.g. MinIO, LocalStack)
        logger.info(f"Using S3-compatible storage at {endpoint_url}")
        return boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )

    logger.info(f"Using AWS S3 in region {region}")
    return boto3.client("s3", region_name=region)


def create_asset_storage() -> AssetStorage | None:
    """Create image storage if ASSET_BUCKET is configured.

    Returns:
        AssetStorage, or None when uploads are not configured
    """
    bucket = os.getenv("ASSET_BUCKET")
    if not bucket:
        logger.warning("ASSET_BUCKET not configured - image uploads are disabled")
        return None

    return AssetStorage(
        s3_client=get_s3_client(),
        bucket=bucket,
        public_base_url=os.getenv("ASSET_PUBLIC_URL"),
    )


def create_email_service() -> EmailService:
    """Create the SMTP email service from environment variables."""
    port = int(os.getenv("SMTP_PORT", "465"))
    username = os.getenv("SMTP_USERNAME")

    if not username:
        logger.warning("SMTP_USERNAME not configured - verification emails will not be sent")

    return EmailService(
        host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        port=port,
        username=username,
        password=os.getenv("SMTP_PASSWORD"),
        from_address=os.getenv("MAIL_FROM", username or "no-reply@localhost"),
        app_name=os.getenv("APP_NAME", "Menu Catalog"),
        use_ssl=port == 465,
    )


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    Returns:
        Configured FastAPI application instance

    Raises:
        ValueError: If required configuration is missing
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Initializing menu catalog service...")

    auth_service_url = os.getenv("AUTH_SERVICE_URL")
    if not auth_service_url:
        raise ValueError("AUTH_SERVICE_URL must be set in environment")

    public_app_url = os.getenv("PUBLIC_APP_URL", DEFAULT_PUBLIC_APP_URL)

    payment_key_secret = os.getenv("PAYMENT_KEY_SECRET")
    if not payment_key_secret:
        logger.warning("PAYMENT_KEY_SECRET not configured - payment verification will fail")

    database = create_database()
    logger.info("Database configured")

    catalog_service = CatalogService(database=database)
    asset_storage = create_asset_storage()
    app = create_app(
        catalog_service=catalog_service,
        identity_client=IdentityClient(base_url=auth_service_url),
        qr_code_service=QRCodeService(catalog_service=catalog_service, public_app_url=public_app_url),
        billing_service=BillingService(database=database, key_secret=payment_key_secret),
        account_service=AccountService(
            database=database,
            email_service=create_email_service(),
            public_app_url=public_app_url,
            asset_storage=asset_storage,
        ),
        asset_storage=asset_storage,
    )

    setup_observability(app, engine=database.engine)

    logger.info("Menu catalog service initialized successfully")
    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
