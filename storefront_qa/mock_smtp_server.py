"""Mock SMTP server for testing report delivery.

Uses aiosmtpd to provide a real SMTP server that captures emails instead of
sending them. Captured emails, including attachments, can be inspected in
tests.
"""
from __future__ import annotations

import email
import logging
import socket
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.message import Message
from typing import Dict, List, Optional

from aiosmtpd.controller import Controller

logger = logging.getLogger(__name__)


def _decode(part: Message) -> str:
    payload = part.get_payload(decode=True) or b""
    return payload.decode(part.get_content_charset() or "utf-8", errors="replace")


@dataclass
class CapturedEmail:
    """Represents a captured email message."""

    sender: str
    recipients: List[str]
    subject: str
    body_text: str
    body_html: Optional[str]
    headers: Dict[str, str]
    attachments: Dict[str, str]
    raw_message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_message(cls, sender: str, recipients: List[str], message_data: bytes) -> "CapturedEmail":
        """Parse raw message data; parts with a filename count as attachments."""
        message_str = message_data.decode("utf-8", errors="replace")
        msg = email.message_from_string(message_str)

        body_text = ""
        body_html = None
        attachments: Dict[str, str] = {}

        for part in msg.walk():
            if part.is_multipart():
                continue
            filename = part.get_filename()
            if filename:
                attachments[filename] = _decode(part)
            elif part.get_content_type() == "text/plain":
                body_text = _decode(part)
            elif part.get_content_type() == "text/html":
                body_html = _decode(part)

        return cls(
            sender=sender,
            recipients=list(recipients),
            subject=msg.get("Subject", ""),
            body_text=body_text,
            body_html=body_html,
            headers=dict(msg.items()),
            attachments=attachments,
            raw_message=message_str,
        )

    def __repr__(self) -> str:
        return f"<Email from={self.sender} to={self.recipients} subject={self.subject!r}>"


class MockSMTPHandler:
    """SMTP handler that captures emails instead of sending them."""

    def __init__(self):
        self.captured_emails: List[CapturedEmail] = []

    async def handle_DATA(self, server, session, envelope):
        """Handle email data (called by aiosmtpd)."""
        logger.info("Mock SMTP received email from %s to %s", envelope.mail_from, envelope.rcpt_tos)
        captured = CapturedEmail.from_message(
            sender=envelope.mail_from,
            recipients=envelope.rcpt_tos,
            message_data=envelope.content,
        )
        self.captured_emails.append(captured)
        return "250 Message accepted for delivery"

    def reset(self):
        self.captured_emails.clear()

    def get_emails_to(self, recipient: str) -> List[CapturedEmail]:
        return [message for message in self.captured_emails if recipient in message.recipients]


def free_port(host: str = "127.0.0.1") -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


class MockSMTPServer:
    """Threaded SMTP server for tests.

    Usage:
        server = MockSMTPServer()
        server.start()

        # ... send mail to server.host:server.port ...

        assert server.captured_emails[0].subject == "Test Subject"
        server.stop()
    """

    def __init__(self, host: str = "127.0.0.1", port: Optional[int] = None):
        self.host = host
        self.port = port or free_port(host)
        self.handler = MockSMTPHandler()
        self.controller: Optional[Controller] = None

    def start(self) -> None:
        # aiosmtpd runs its own event loop in a background thread
        self.controller = Controller(self.handler, hostname=self.host, port=self.port)
        self.controller.start()
        logger.info("Mock SMTP server started on %s:%s", self.host, self.port)

    def stop(self) -> None:
        if self.controller is not None:
            self.controller.stop()
            self.controller = None
            logger.info("Mock SMTP server stopped")

    def reset(self) -> None:
        self.handler.reset()

    @property
    def captured_emails(self) -> List[CapturedEmail]:
        return self.handler.captured_emails
