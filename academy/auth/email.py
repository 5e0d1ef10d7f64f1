"""SMTP sender for account verification and password reset links."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from academy.core.config import EmailConfig

LOGGER = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    """Raised when an outgoing email could not be handed to the SMTP server."""


class EmailService:
    """Send transactional auth emails; logs instead of sending when SMTP is unset."""

    def __init__(self, config: EmailConfig) -> None:
        self._config = config

    @property
    def configured(self) -> bool:
        return bool(self._config.smtp_host and self._config.from_email)

    def send_verification_email(self, email: str, token: str) -> None:
        """Send the email-verification link for a new account."""
        url = f"{self._config.frontend_url}/verify-email?token={token}"
        body = (
            "Welcome to Royal Trading Academy!\n\n"
            "Please verify your email address by opening the link below:\n"
            f"{url}\n\n"
            "This verification link will expire in 24 hours.\n"
            "If you didn't create an account, please ignore this email."
        )
        self._send(email, "Verify Your Royal Trading Academy Account", body)

    def send_password_reset_email(self, email: str, token: str) -> None:
        """Send the password-reset link."""
        url = f"{self._config.frontend_url}/reset-password?token={token}"
        body = (
            "You have requested to reset your Royal Trading Academy password.\n\n"
            f"Open the link below to choose a new password:\n{url}\n\n"
            "This reset link will expire in 1 hour.\n"
            "If you didn't request a password reset, please ignore this email."
        )
        self._send(email, "Reset Your Royal Trading Academy Password", body)

    def _send(self, to_email: str, subject: str, body: str) -> None:
        if not self.configured:
            LOGGER.warning(
                "SMTP not configured, email not sent: %s", subject, extra={"email": to_email}
            )
            return

        msg = EmailMessage()
        msg["From"] = self._config.from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(body)

        try:
            with smtplib.SMTP(self._config.smtp_host, self._config.smtp_port, timeout=10) as server:
                if self._config.use_tls:
                    server.starttls()
                if self._config.smtp_username and self._config.smtp_password:
                    server.login(self._config.smtp_username, self._config.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.exception("Failed to send email: %s", subject, extra={"email": to_email})
            raise EmailDeliveryError(f"Failed to send email: {subject}") from exc

        LOGGER.info("Email sent: %s", subject, extra={"email": to_email})
