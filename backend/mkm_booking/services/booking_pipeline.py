"""Booking intake pipeline.

Runs one booking submission through, in order:
1. Normalize the payload into a BookingRequest
2. Honeypot check (400, nothing else runs)
3. Field validation (422, nothing else runs)
4. Rate limit check-and-set for the caller address (429)
5. Route recipients from the booking type
6. Compose subject and body
7. Send once through the mailer
8. Map the provider outcome to a response
"""

from __future__ import annotations

from typing import Any

from loguru import logger
from pydantic import BaseModel

from mkm_booking.config import settings
from mkm_booking.models.booking import BookingRequest
from mkm_booking.services.email_sender import Mailer, compose_booking_email, mask_email
from mkm_booking.services.rate_limit import RateLimiter
from mkm_booking.validation import is_pizza_records, validate

INVALID_SUBMISSION = "Invalid submission"
TOO_MANY_REQUESTS = "Too many requests. Try again shortly."
SEND_FAILED = "Email send failed"
SERVER_ERROR = "Server error"


class PipelineOutcome(BaseModel):
    """HTTP status and JSON body produced for one submission."""

    status_code: int
    body: dict[str, Any]


def route_recipients(booking_type: str) -> list[str]:
    """Pizza Records bookings go to both inboxes; everything else to MKM only."""
    if is_pizza_records(booking_type):
        return [settings.mkm_inbox, settings.pizza_records_inbox]
    return [settings.mkm_inbox]


def server_error(detail: str) -> PipelineOutcome:
    return PipelineOutcome(status_code=500, body={"ok": False, "error": SERVER_ERROR, "details": detail})


async def run_pipeline(
    payload: Any,
    *,
    address: str,
    limiter: RateLimiter,
    mailer: Mailer,
) -> PipelineOutcome:
    """Process one booking submission.

    Transport failures from the mailer propagate; the caller maps them to a
    500 response.
    """
    booking = BookingRequest.model_validate(payload if isinstance(payload, dict) else {})

    # ── Validation ──────────────────────────────────────────────────
    errors = validate(booking)
    if "honeypot" in errors:
        logger.warning("Honeypot tripped from {}", address)
        return PipelineOutcome(
            status_code=400,
            body={"ok": False, "error": INVALID_SUBMISSION, "details": errors},
        )
    if errors:
        logger.warning("Rejected booking from {}: {}", address, sorted(errors))
        return PipelineOutcome(
            status_code=422,
            body={"ok": False, "error": INVALID_SUBMISSION, "details": errors},
        )

    # ── Rate limit ──────────────────────────────────────────────────
    if not await limiter.allow(address):
        return PipelineOutcome(status_code=429, body={"ok": False, "error": TOO_MANY_REQUESTS})

    # ── Routing + composition ───────────────────────────────────────
    recipients = route_recipients(booking.booking_type)
    message = compose_booking_email(booking, recipients)

    logger.info(
        "Routing booking — type={}, service={}, add_ons={}, from={}, recipients={}",
        booking.booking_type,
        booking.resolved_service,
        booking.add_ons,
        mask_email(booking.email),
        recipients,
    )

    # ── Dispatch ────────────────────────────────────────────────────
    result = await mailer.send(message)

    if result.error is not None:
        logger.error("Email provider error: {}", result.error.message)
        return PipelineOutcome(
            status_code=502,
            body={"ok": False, "error": SEND_FAILED, "details": result.error.model_dump()},
        )

    logger.info("Booking email sent to {} (id={})", recipients, result.id)
    return PipelineOutcome(
        status_code=200,
        body={"ok": True, "version": settings.api_version, "to": recipients, "id": result.id},
    )
