"""
Email Service for Double M Arena.

Sends transactional mail over SMTP. When no SMTP host is configured the
message is logged instead, which is what development setups rely on.
"""

import asyncio
import html as html_lib
import logging
import smtplib
from email.mime.text import MIMEText

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class EmailService:
    """SMTP mail sender."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.smtp_host)

    def verification_url(self, token: str) -> str:
        return f"{self.settings.public_base_url.rstrip('/')}/api/verify/{token}"

    def _send(self, to_email: str, subject: str, html: str) -> None:
        msg = MIMEText(html, "html")
        msg["Subject"] = subject
        msg["From"] = self.settings.mail_from
        msg["To"] = to_email

        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as server:
            if self.settings.smtp_use_tls:
                server.starttls()
            if self.settings.smtp_user and self.settings.smtp_password:
                server.login(self.settings.smtp_user, self.settings.smtp_password)
            server.send_message(msg)

    async def send_email(self, to_email: str, subject: str, html: str) -> bool:
        """
        Send an HTML email.

        Returns:
            True if the message was handed to the SMTP server, False if SMTP
            is not configured or delivery failed (the failure is logged).
        """
        if not self.is_configured:
            logger.info(f"SMTP not configured, email to {to_email} not sent: {subject}")
            return False

        try:
            await asyncio.to_thread(self._send, to_email, subject, html)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

        logger.info(f"Email sent to {to_email}")
        return True

    async def send_verification_email(self, to_email: str, name: str, token: str) -> bool:
        url = self.verification_url(token)
        if not self.is_configured:
            logger.info(f"Verification link for {to_email}: {url}")

        html = (
            f"<p>Hello {html_lib.escape(name)},</p>"
            "<p>Please Verify Your Email by clicking on the Link Below</p>"
            f'<a href="{url}">{url}</a>'
        )
        return await self.send_email(to_email, "Email Verification", html)


def get_email_service() -> EmailService:
    """Dependency returning the mail sender."""
    return EmailService()
