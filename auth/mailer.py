"""
auth/mailer.py -- Notification gateway for invitation mail.

The workflow sees one awaitable call, send(recipient, subject, body), that
resolves to True (delivered) or False (the channel reported a failure).
Transport errors are caught and logged here so the workflow only has to
branch on the result.

SmtpNotificationGateway delivers through aiosmtplib. LoggingNotificationGateway
writes the message to the log instead and is selected when SMTP_HOST is
empty, which keeps local development working without a mail server.
"""

from __future__ import annotations

import logging
from email.message import EmailMessage
from typing import TYPE_CHECKING, Protocol

import aiosmtplib

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("identity.mailer")


class NotificationGateway(Protocol):
    async def send(self, recipient: str, subject: str, body: str) -> bool: ...


class SmtpNotificationGateway:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = False,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        """Deliver a plain-text message. Returns True on success, False on failure."""
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)

        try:
            response = await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                use_tls=self.use_tls,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error("Mail delivery to %s failed: %s", recipient, exc)
            return False

        logger.info("Mail sent to %s: %s", recipient, response[1] if response else "")
        return True


class LoggingNotificationGateway:
    """Development gateway: logs the message and reports success."""

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        logger.warning("SMTP not configured -- mail to %s not sent. Subject: %s\n%s", recipient, subject, body)
        return True


def build_gateway(settings: Settings) -> NotificationGateway:
    if not settings.smtp_host:
        return LoggingNotificationGateway()
    return SmtpNotificationGateway(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.mail_from,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        timeout=settings.notification_timeout_seconds,
    )
