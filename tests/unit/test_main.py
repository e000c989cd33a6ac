"""Unit tests for main application entry point."""

import os
from unittest.mock import MagicMock, Mock, patch

import pytest

from menu_catalog_service.services.asset_storage import AssetStorage
from src.main import (
    create_application,
    create_asset_storage,
    create_database,
    create_email_service,
    get_s3_client,
)


@pytest.mark.unit
class TestGetS3Client:
    """Tests for get_s3_client function."""

    @patch.dict(os.environ, {"S3_ENDPOINT": "", "AWS_REGION": "us-west-2"}, clear=True)
    @patch("src.main.boto3.client")
    def test_creates_aws_client_when_no_endpoint(self, mock_boto3_client: Mock) -> None:
        """Test that an AWS S3 client is created when no local endpoint configured."""
        mock_client = MagicMock()
        mock_boto3_client.return_value = mock_client

        result = get_s3_client()

        mock_boto3_client.assert_called_once_with("s3", region_name="us-west-2")
        assert result == mock_client

    @patch.dict(
        os.environ,
        {
            "S3_ENDPOINT": "http://localhost:9000",
            "AWS_REGION": "us-east-1",
            "AWS_ACCESS_KEY_ID": "minio",
            "AWS_SECRET_ACCESS_KEY": "minio-secret",
        },
        clear=True,
    )
    @patch("src.main.boto3.client")
    def test_creates_local_client_when_endpoint_provided(self, mock_boto3_client: Mock) -> None:
        """Test that S3-compatible storage is used when an endpoint is configured."""
        get_s3_client()

        mock_boto3_client.assert_called_once_with(
            "s3",
            endpoint_url="http://localhost:9000",
            region_name="us-east-1",
            aws_access_key_id="minio",
            aws_secret_access_key="minio-secret",
        )

    @patch.dict(os.environ, {}, clear=True)
    @patch("src.main.boto3.client")
    def test_uses_default_region_when_not_specified(self, mock_boto3_client: Mock) -> None:
        """Test that default region us-east-1 is used when AWS_REGION not set."""
        get_s3_client()

        mock_boto3_client.assert_called_once_with("s3", region_name="us-east-1")


@pytest.mark.unit
class TestCreateAssetStorage:
    """Tests for create_asset_storage function."""

    @patch.dict(os.environ, {}, clear=True)
    def test_returns_none_without_bucket(self) -> None:
        """Test that uploads are disabled when no bucket is configured."""
        assert create_asset_storage() is None

    @patch.dict(
        os.environ, {"ASSET_BUCKET": "menu-assets", "ASSET_PUBLIC_URL": "https://cdn.test"}, clear=True
    )
    @patch("src.main.get_s3_client")
    def test_creates_storage_for_bucket(self, mock_get_s3_client: Mock) -> None:
        """Test that the bucket and public URL are passed through."""
        storage = create_asset_storage()

        assert isinstance(storage, AssetStorage)
        assert storage.bucket == "menu-assets"
        assert storage.public_base_url == "https://cdn.test"
        assert storage.s3_client == mock_get_s3_client.return_value


@pytest.mark.unit
class TestCreateEmailService:
    """Tests for create_email_service function."""

    @patch.dict(
        os.environ,
        {"SMTP_HOST": "smtp.test.com", "SMTP_PORT": "587", "SMTP_USERNAME": "mailer@test.com", "SMTP_PASSWORD": "pw"},
        clear=True,
    )
    def test_starttls_port(self) -> None:
        """Test that port 587 uses STARTTLS and the login as sender."""
        email_service = create_email_service()

        assert email_service.host == "smtp.test.com"
        assert email_service.port == 587
        assert email_service.use_ssl is False
        assert email_service.from_address == "mailer@test.com"

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self) -> None:
        """Test the SSL default without credentials."""
        email_service = create_email_service()

        assert email_service.port == 465
        assert email_service.use_ssl is True
        assert email_service.username is None


@pytest.mark.unit
class TestCreateDatabase:
    """Tests for create_database function."""

    @patch.dict(os.environ, {"DATABASE_URL": "sqlite://"}, clear=True)
    def test_creates_sqlite_database_with_tables(self) -> None:
        """Test that tables exist after startup."""
        database = create_database()

        assert database.engine.dialect.name == "sqlite"
        with database.engine.connect() as connection:
            tables = {row[0] for row in connection.exec_driver_sql("SELECT name FROM sqlite_master WHERE type='table'")}
        assert {"owners", "restaurants", "menus", "menu_categories", "menu_items", "payments"} <= tables


@pytest.mark.unit
class TestCreateApplication:
    """Tests for create_application function."""

    @patch("src.main.setup_observability")
    @patch("src.main.configure_logging")
    @patch("src.main.create_database")
    @patch("src.main.create_app")
    @patch.dict(
        os.environ,
        {
            "AUTH_SERVICE_URL": "https://auth.test.com",
            "PUBLIC_APP_URL": "https://menus.test",
            "PAYMENT_KEY_SECRET": "secret",
            "LOG_LEVEL": "DEBUG",
        },
        clear=True,
    )
    def test_creates_application_with_all_dependencies(
        self,
        mock_create_app: Mock,
        mock_create_database: Mock,
        mock_configure_logging: Mock,
        mock_setup_observability: Mock,
    ) -> None:
        """Test that services are wired from the environment."""
        mock_app = MagicMock()
        mock_create_app.return_value = mock_app
        mock_database = mock_create_database.return_value

        result = create_application()

        assert result == mock_app
        mock_configure_logging.assert_called_once_with("DEBUG")
        kwargs = mock_create_app.call_args.kwargs
        assert kwargs["identity_client"].base_url == "https://auth.test.com"
        assert kwargs["qr_code_service"].public_app_url == "https://menus.test"
        assert kwargs["billing_service"].key_secret == "secret"
        assert kwargs["catalog_service"].database == mock_database
        assert kwargs["asset_storage"] is None
        mock_setup_observability.assert_called_once_with(mock_app, engine=mock_database.engine)

    @patch("src.main.configure_logging")
    @patch("src.main.create_database")
    @patch.dict(os.environ, {}, clear=True)
    def test_raises_error_when_auth_service_url_missing(
        self, mock_create_database: Mock, mock_configure_logging: Mock
    ) -> None:
        """Test that the identity provider URL is required."""
        with pytest.raises(ValueError, match="AUTH_SERVICE_URL"):
            create_application()

        mock_create_database.assert_not_called()
