"""Booking email composition and dispatch.

Builds the single plaintext email for an accepted booking:
- Subject tagged with the booking type and chosen package
- Fixed-order body rendered from ``templates/booking_request.txt``
- Reply-To set to the submitter so the inbox owner can answer directly

Dispatch goes through a ``Mailer``: Resend by default, SMTP optionally.
"""

from __future__ import annotations

from email.mime.text import MIMEText
from functools import lru_cache
from pathlib import Path
from typing import Protocol

import aiosmtplib
from jinja2 import Environment, FileSystemLoader, select_autoescape
from loguru import logger

from mkm_booking.config import settings
from mkm_booking.models.booking import BookingRequest
from mkm_booking.models.email import EmailMessage, ProviderError, SendResult
from mkm_booking.services.resend_client import ResendClient

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)


class Mailer(Protocol):
    async def send(self, message: EmailMessage) -> SendResult: ...


def mask_email(address: str) -> str:
    """Keep the first two characters of the local part, star out the rest.

    ``jonathan@example.com`` → ``jo******@example.com``
    """
    if not address:
        return ""
    local, at, domain = address.partition("@")
    masked = local[:2] + "*" * max(len(local) - 2, 0)
    return f"{masked}{at}{domain}"


def compose_subject(booking: BookingRequest) -> str:
    """Caller-provided subject, else ``[<tag>] <service> — Booking Request``."""
    if booking.subject:
        return booking.subject
    tag = "[Pizza Records]" if booking.is_pizza_records else "[External]"
    return f"{tag} {booking.resolved_service} — Booking Request"


def render_body(booking: BookingRequest) -> str:
    template = _env.get_template("booking_request.txt")
    return template.render(
        booking_type=booking.booking_type,
        service=booking.resolved_service,
        add_ons=booking.add_ons,
        date=booking.date,
        name=booking.name,
        email=booking.email,
        phone=booking.phone,
        message=booking.message,
    ).strip()


def compose_booking_email(booking: BookingRequest, recipients: list[str]) -> EmailMessage:
    """Build the outbound email for one booking, addressed to every recipient at once."""
    return EmailMessage(
        from_address=f"{settings.resend_from_name} <{settings.resend_from}>",
        to=list(recipients),
        subject=compose_subject(booking),
        text=render_body(booking),
        reply_to=booking.email or None,
        headers={"List-Unsubscribe": settings.list_unsubscribe},
    )


class ResendMailer:
    """Mailer backed by the Resend HTTP API."""

    def __init__(self, client: ResendClient | None = None) -> None:
        self._client = client or ResendClient()

    async def send(self, message: EmailMessage) -> SendResult:
        return await self._client.send(message)

    async def aclose(self) -> None:
        await self._client.aclose()


class SmtpMailer:
    """Mailer backed by an SMTP relay.

    Rejections from the server are returned as provider errors; failure to
    reach the server raises. SMTP yields no message id.
    """

    def __init__(self, smtp_config: dict) -> None:
        self._config = smtp_config

    async def send(self, message: EmailMessage) -> SendResult:
        msg = MIMEText(message.text, "plain", "utf-8")
        msg["From"] = message.from_address
        msg["To"] = ", ".join(message.to)
        msg["Subject"] = message.subject
        if message.reply_to:
            msg["Reply-To"] = message.reply_to
        for name, value in message.headers.items():
            msg[name] = value

        logger.info("Sending booking email via {}:{}", self._config["host"], self._config["port"])
        try:
            await aiosmtplib.send(
                msg,
                hostname=self._config["host"],
                port=self._config["port"],
                username=self._config["user"] or None,
                password=self._config["password"] or None,
                use_tls=False,
                start_tls=True,
            )
        except aiosmtplib.SMTPResponseException as e:
            return SendResult(error=ProviderError(name="smtp_rejected", message=e.message, status_code=e.code))
        except aiosmtplib.SMTPRecipientsRefused as e:
            return SendResult(error=ProviderError(name="smtp_recipients_refused", message=str(e)))
        return SendResult(id=None)

    async def aclose(self) -> None:
        return None


@lru_cache
def get_mailer() -> ResendMailer | SmtpMailer:
    """Process-wide mailer chosen by ``EMAIL_TRANSPORT``."""
    if settings.email_transport == "smtp":
        return SmtpMailer(
            {
                "host": settings.smtp_host,
                "port": settings.smtp_port,
                "user": settings.smtp_user,
                "password": settings.smtp_password,
            }
        )
    return ResendMailer()
