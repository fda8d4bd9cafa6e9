"""
Inquiry notification emails with pluggable SMTP / Resend / in-memory transports.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Optional, Protocol

import aiosmtplib
import httpx

from pasokari.db import InquiryRecord

logger = logging.getLogger(__name__)

SUBJECT_TEMPLATE = "📩 Pesan Baru: {name}"

HTML_TEMPLATE = """
<h3>Pesan Baru dari Website Pasokari</h3>
<p><strong>Nama:</strong> {name}</p>
<p><strong>Email:</strong> {email}</p>
<p><strong>Telepon:</strong> {phone}</p>
<hr/>
<p><strong>Pesan:</strong></p>
<blockquote style="background:#f9f9f9; padding:15px; border-left: 4px solid #00a859;">
  {message}
</blockquote>
"""


class SendError(Exception):
    """The mail transport failed to deliver a message."""


class MailTransport(Protocol):
    """Delivers one HTML message."""

    name: str

    async def send(self, to: str, sender: str, subject: str, html_body: str) -> None:
        ...


@dataclass
class SentMessage:
    to: str
    sender: str
    subject: str
    html_body: str


@dataclass
class InMemoryTransport:
    """Test double that records messages instead of sending them."""

    name: str = "In-Memory"
    sent: list[SentMessage] = field(default_factory=list)
    error: Optional[Exception] = None

    async def send(self, to: str, sender: str, subject: str, html_body: str) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(SentMessage(to, sender, subject, html_body))


@dataclass
class SmtpTransport:
    """Credentialed SMTP relay (implicit TLS on port 465, STARTTLS otherwise)."""

    username: str
    password: str
    hostname: str = "smtp.gmail.com"
    port: int = 465
    timeout: float = 15.0
    name: str = "SMTP"

    async def send(self, to: str, sender: str, subject: str, html_body: str) -> None:
        message = EmailMessage()
        message["From"] = sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(html_body, subtype="html")

        use_tls = self.port == 465
        try:
            await aiosmtplib.send(
                message,
                hostname=self.hostname,
                port=self.port,
                username=self.username,
                password=self.password,
                use_tls=use_tls,
                start_tls=not use_tls,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise SendError(f"SMTP delivery failed: {exc}") from exc


@dataclass
class ResendTransport:
    """Transactional email through the Resend HTTP API."""

    api_key: str
    api_url: str = "https://api.resend.com"
    timeout: float = 15.0
    name: str = "Resend"
    # Overridable so tests can plug in httpx.MockTransport.
    http_transport: Optional[httpx.AsyncBaseTransport] = None

    async def send(self, to: str, sender: str, subject: str, html_body: str) -> None:
        payload = {"from": sender, "to": [to], "subject": subject, "html": html_body}
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        url = self.api_url.rstrip("/") + "/emails"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.http_transport
            ) as client:
                response = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise SendError(f"Resend request failed: {exc}") from exc

        if response.status_code >= 400:
            raise SendError(
                f"Resend rejected message ({response.status_code}): {response.text}"
            )


def render_inquiry_email(inquiry: InquiryRecord) -> tuple[str, str]:
    """Return (subject, html) for an inquiry. Field values are HTML-escaped."""
    subject = SUBJECT_TEMPLATE.format(name=inquiry.name)
    body = HTML_TEMPLATE.format(
        name=html.escape(inquiry.name),
        email=html.escape(inquiry.email),
        phone=html.escape(inquiry.phone),
        message=html.escape(inquiry.message),
    )
    return subject, body


class Notifier:
    """Sends the inquiry notification; never raises to the caller."""

    def __init__(
        self,
        transport: MailTransport,
        sender: Optional[str],
        recipient: Optional[str],
    ):
        self.transport = transport
        self.sender = sender
        self.recipient = recipient

    async def send_inquiry_notification(self, inquiry: InquiryRecord) -> None:
        if not self.recipient:
            logger.warning(
                "No notification recipient configured; skipping email for %s",
                inquiry.name,
            )
            return

        subject, body = render_inquiry_email(inquiry)
        try:
            await self.transport.send(
                self.recipient, self.sender or self.recipient, subject, body
            )
        except SendError as exc:
            logger.warning("Notification email failed (%s): %s", self.transport.name, exc)
            return
        except Exception:
            logger.exception("Unexpected error sending notification via %s", self.transport.name)
            return
        logger.info("Notification email for %s sent via %s", inquiry.name, self.transport.name)
