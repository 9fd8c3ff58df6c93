"""
Outbound email transport.

`EmailTransport.send` either returns normally or raises EmailTransportError.
Callers translate the exception into a delivery outcome; nothing here touches
lead state.

The production transport is SendGrid.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Bcc, Mail, ReplyTo

logger = logging.getLogger(__name__)


class EmailTransportError(Exception):
    """Raised when the transport could not hand the message off."""


@dataclass(frozen=True, slots=True)
class EmailMessage:
    from_email: str
    to: str
    subject: str
    text: str
    reply_to: Optional[str] = None
    bcc: Optional[str] = None


class EmailTransport(ABC):
    @abstractmethod
    def send(self, message: EmailMessage) -> None:
        """Send a message, raising EmailTransportError on failure."""


class SendGridTransport(EmailTransport):
    """Plain-text email via the SendGrid v3 API."""

    def __init__(self, api_key: str):
        self._client = SendGridAPIClient(api_key=api_key)

    def send(self, message: EmailMessage) -> None:
        mail = Mail(
            from_email=message.from_email,
            to_emails=message.to,
            subject=message.subject,
            plain_text_content=message.text,
        )
        if message.reply_to:
            mail.reply_to = ReplyTo(message.reply_to)
        if message.bcc:
            mail.add_bcc(Bcc(message.bcc))

        try:
            response = self._client.send(mail)
        except Exception as e:
            raise EmailTransportError(str(e)) from e

        if response.status_code not in (200, 201, 202):
            raise EmailTransportError(f"SendGrid returned status {response.status_code}")

        logger.info("Email sent to %s: %s", message.to, message.subject)


def build_transport(api_key: Optional[str]) -> EmailTransport:
    """Production transport for the configured API key."""
    return SendGridTransport(api_key=api_key or "")


__all__ = ["EmailMessage", "EmailTransport", "EmailTransportError", "SendGridTransport", "build_transport"]
