"""Outbound email over SMTP."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

logger = logging.getLogger(__name__)

VERIFICATION_TEMPLATE = """
<html>
<body style="font-family: Arial, sans-serif;">
    <h2>Verify your email address</h2>
    <p>Hello,</p>
    <p>Please confirm the new email address for your {app_name} account.</p>
    <p style="margin: 24px 0;">
        <a href="{link}" style="background-color: #000000; color: #ffffff; padding: 12px 20px;
           border-radius: 5px; text-decoration: none;">Verify email</a>
    </p>
    <p>If the button does not work, copy this link into your browser:</p>
    <p>{link}</p>
    <p>If you did not request this change, you can ignore this email.</p>
</body>
</html>
"""


class EmailService:
    """Sends transactional email. Failures are logged and reported as False, never raised."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str | None,
        password: str | None,
        from_address: str,
        app_name: str = "Menu Catalog",
        use_ssl: bool = True,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the email service.

        Args:
            host: SMTP server host
            port: SMTP server port (465 for SSL, 587 for STARTTLS)
            username: SMTP login, email is skipped when not configured
            password: SMTP password
            from_address: Sender address
            app_name: Product name used in templates
            use_ssl: Connect with implicit TLS instead of STARTTLS
            timeout: Socket timeout in seconds
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.app_name = app_name
        self.use_ssl = use_ssl
        self.timeout = timeout

    def send_email(self, to_address: str, subject: str, html_body: str) -> bool:
        """Send an HTML email.

        Args:
            to_address: Recipient address
            subject: Subject line
            html_body: HTML content

        Returns:
            bool: True if the SMTP server accepted the message, False otherwise
        """
        if not self.username or not self.password:
            logger.warning("SMTP credentials not configured, skipping email")
            return False

        message = MIMEMultipart()
        message["From"] = self.from_address
        message["To"] = to_address
        message["Subject"] = subject
        message.attach(MIMEText(html_body, "html"))

        try:
            if self.use_ssl:
                server: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
                server.starttls()
            with server:
                server.login(self.username, self.password)
                server.sendmail(self.from_address, [to_address], message.as_string())

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_address}: {e}")
            return False

        logger.info(f"Email sent to {to_address}: {subject}")
        return True

    def send_verification_email(self, to_address: str, link: str) -> bool:
        """Send the email-address verification message.

        Args:
            to_address: Address being verified
            link: Verification link to include

        Returns:
            bool: True if sent
        """
        subject = f"Verify your email for {self.app_name}"
        body = VERIFICATION_TEMPLATE.format(app_name=self.app_name, link=link)
        return self.send_email(to_address, subject, body)
