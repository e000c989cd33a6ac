"""Unit tests for EmailService."""

import smtplib
from unittest.mock import MagicMock, Mock, patch

import pytest

from menu_catalog_service.services.email_service import EmailService


@pytest.mark.unit
class TestEmailService:
    """Test suite for EmailService."""

    @pytest.fixture
    def email_service(self) -> EmailService:
        """Email service configured for implicit TLS."""
        return EmailService(
            host="smtp.test.com",
            port=465,
            username="mailer@test.com",
            password="app-password",
            from_address="Menu Catalog <mailer@test.com>",
        )

    @patch("menu_catalog_service.services.email_service.smtplib.SMTP_SSL")
    def test_send_email_over_ssl(self, mock_smtp_ssl: Mock, email_service: EmailService) -> None:
        """Test that mail is sent with login over an SSL connection."""
        server = MagicMock()
        mock_smtp_ssl.return_value = server

        sent = email_service.send_email("owner@bistro.example", "Hello", "<p>Hi</p>")

        assert sent is True
        mock_smtp_ssl.assert_called_once_with("smtp.test.com", 465, timeout=10.0)
        server.login.assert_called_once_with("mailer@test.com", "app-password")
        from_address, recipients, raw_message = server.sendmail.call_args.args
        assert from_address == "Menu Catalog <mailer@test.com>"
        assert recipients == ["owner@bistro.example"]
        assert "Subject: Hello" in raw_message

    @patch("menu_catalog_service.services.email_service.smtplib.SMTP")
    def test_send_email_with_starttls(self, mock_smtp: Mock) -> None:
        """Test the STARTTLS path used on port 587."""
        server = MagicMock()
        mock_smtp.return_value = server
        email_service = EmailService(
            host="smtp.test.com",
            port=587,
            username="mailer@test.com",
            password="app-password",
            from_address="mailer@test.com",
            use_ssl=False,
        )

        assert email_service.send_email("owner@bistro.example", "Hello", "<p>Hi</p>") is True
        server.starttls.assert_called_once()
        server.sendmail.assert_called_once()

    @patch("menu_catalog_service.services.email_service.smtplib.SMTP_SSL")
    def test_missing_credentials_skip_sending(self, mock_smtp_ssl: Mock) -> None:
        """Test that nothing is sent without SMTP credentials."""
        email_service = EmailService(
            host="smtp.test.com", port=465, username=None, password=None, from_address="no-reply@localhost"
        )

        assert email_service.send_email("owner@bistro.example", "Hello", "<p>Hi</p>") is False
        mock_smtp_ssl.assert_not_called()

    @patch("menu_catalog_service.services.email_service.smtplib.SMTP_SSL")
    def test_smtp_error_returns_false(self, mock_smtp_ssl: Mock, email_service: EmailService) -> None:
        """Test that authentication failures are reported, not raised."""
        server = MagicMock()
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"Bad credentials")
        mock_smtp_ssl.return_value = server

        assert email_service.send_email("owner@bistro.example", "Hello", "<p>Hi</p>") is False

    @patch("menu_catalog_service.services.email_service.smtplib.SMTP_SSL")
    def test_connection_error_returns_false(self, mock_smtp_ssl: Mock, email_service: EmailService) -> None:
        """Test that unreachable servers are reported, not raised."""
        mock_smtp_ssl.side_effect = ConnectionRefusedError("refused")

        assert email_service.send_email("owner@bistro.example", "Hello", "<p>Hi</p>") is False

    def test_verification_email_contains_link(self, email_service: EmailService) -> None:
        """Test the verification message content."""
        with patch.object(email_service, "send_email", return_value=True) as mock_send:
            sent = email_service.send_verification_email(
                "new@bistro.example", "https://menus.test/verify-email?token=abc"
            )

        assert sent is True
        to_address, subject, body = mock_send.call_args.args
        assert to_address == "new@bistro.example"
        assert "Menu Catalog" in subject
        assert "https://menus.test/verify-email?token=abc" in body
