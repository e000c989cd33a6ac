"""Shared dependency factory for the Lambda handler.

This module provides cached dependency initialization to optimize Lambda cold starts.
Dependencies are created once and reused across invocations within the same Lambda container.
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

# Module-level caches for Lambda container reuse
_database: Database | None = None
_s3_client: Any | None = None
_catalog_service: CatalogService | None = None
_fastapi_app: FastAPI | None = None


def get_database() -> Database:
    """Create or retrieve the cached database.

    Returns:
        Database bound to DATABASE_URL

    Raises:
        ValueError: If DATABASE_URL is not set
    """
    global _database

    if _database is not None:
        return _database

    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL must be set in environment")

    # One connection per container; Lambda never serves requests concurrently
    _database = Database(
        url,
        echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
        pool_size=1,
        max_overflow=0,
        pool_pre_ping=True,
    )
    _database.create_tables()

    logger.info("Database initialized")
    return _database


def get_s3_client() -> Any:
    """Create or retrieve the cached S3 client."""
    global _s3_client

    if _s3_client is not None:
        return _s3_client

    endpoint_url = os.getenv("S3_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        logger.info(f"Using S3-compatible storage at {endpoint_url}")
        _s3_client = boto3.client("s3", endpoint_url=endpoint_url, region_name=region)
    else:
        logger.info(f"Using AWS S3 in region {region}")
        _s3_client = boto3.client("s3", region_name=region)

    return _s3_client


def get_catalog_service() -> CatalogService:
    """Create or retrieve the cached catalog service."""
    global _catalog_service

    if _catalog_service is not None:
        return _catalog_service

    _catalog_service = CatalogService(database=get_database())

    logger.info("Catalog service initialized")
    return _catalog_service


def get_fastapi_app() -> FastAPI:
    """Create or retrieve cached FastAPI application.

    Returns:
        Configured FastAPI application instance

    Raises:
        ValueError: If AUTH_SERVICE_URL is not set
    """
    global _fastapi_app

    if _fastapi_app is not None:
        return _fastapi_app

    auth_service_url = os.getenv("AUTH_SERVICE_URL")
    if not auth_service_url:
        raise ValueError("AUTH_SERVICE_URL must be set in environment")

    public_app_url = os.getenv("PUBLIC_APP_URL", "http://localhost:3000")
    database = get_database()
    catalog_service = get_catalog_service()

    bucket = os.getenv("ASSET_BUCKET")
    asset_storage = (
        AssetStorage(s3_client=get_s3_client(), bucket=bucket, public_base_url=os.getenv("ASSET_PUBLIC_URL"))
        if bucket
        else None
    )
    if asset_storage is None:
        logger.warning("ASSET_BUCKET not configured - image uploads are disabled")

    smtp_port = int(os.getenv("SMTP_PORT", "465"))
    email_service = EmailService(
        host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        port=smtp_port,
        username=os.getenv("SMTP_USERNAME"),
        password=os.getenv("SMTP_PASSWORD"),
        from_address=os.getenv("MAIL_FROM", os.getenv("SMTP_USERNAME") or "no-reply@localhost"),
        app_name=os.getenv("APP_NAME", "Menu Catalog"),
        use_ssl=smtp_port == 465,
    )

    _fastapi_app = create_app(
        catalog_service=catalog_service,
        identity_client=IdentityClient(base_url=auth_service_url),
        qr_code_service=QRCodeService(catalog_service=catalog_service, public_app_url=public_app_url),
        billing_service=BillingService(database=database, key_secret=os.getenv("PAYMENT_KEY_SECRET")),
        account_service=AccountService(
            database=database,
            email_service=email_service,
            public_app_url=public_app_url,
            asset_storage=asset_storage,
        ),
        asset_storage=asset_storage,
    )
    setup_observability(_fastapi_app, engine=database.engine)

    logger.info("FastAPI application initialized")
    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Initialize Lambda environment with logging.

    Should be called once during Lambda cold start.
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Lambda environment initialized")
