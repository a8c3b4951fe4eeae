"""Booking request validation rules.

The same rule set runs in the intake client (fast feedback) and in the
request handler (authoritative). The handler never trusts a client-side
verdict and always re-validates.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from mkm_booking.catalog import BOOKING_TYPES, DEFAULT_SERVICE, EXTERNAL, PIZZA_RECORDS

if TYPE_CHECKING:
    from mkm_booking.models.booking import BookingRequest

NAME_MIN_LENGTH = 2
MESSAGE_MIN_LENGTH = 20
MESSAGE_MAX_LENGTH = 5000
MAX_LINKS = 5
MAX_ADD_ONS = 12

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
LINK_RE = re.compile(r"https?://|www\.", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")

ERROR_MESSAGES = {
    "honeypot": "Spam detected.",
    "name": "Enter your full name (≥2 characters).",
    "email": "Enter a valid email.",
    "message_short": "Please provide more detail (≥20 characters).",
    "message_long": f"Message is too long (max {MESSAGE_MAX_LENGTH} characters).",
    "message_links": f"Too many links in message (max {MAX_LINKS}).",
    "service": "Please select a package.",
    "bookingType": "Choose a booking type.",
    "addOns": "Too many add-ons selected.",
    "date": "Invalid date.",
}


def as_text(value: Any) -> str:
    """Coerce a loosely-typed JSON value to a string (None becomes "")."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def normalize_text(value: Any) -> str:
    """Collapse whitespace runs to a single space and trim."""
    return _WHITESPACE_RE.sub(" ", as_text(value)).strip()


def normalize_message(value: Any) -> str:
    """Drop carriage returns and trim, keeping the sender's line breaks."""
    return as_text(value).replace("\r", "").strip()


def is_email(value: Any) -> bool:
    return bool(EMAIL_RE.match(normalize_text(value)))


def count_links(text: str) -> int:
    """Count ``http://``, ``https://`` and ``www.`` occurrences."""
    return len(LINK_RE.findall(text))


def canonical_booking_type(value: Any) -> str:
    """Map a booking type to its catalog spelling, case-insensitively.

    Unknown values are returned normalized but otherwise untouched so that
    validation can reject them.
    """
    text = normalize_text(value)
    for booking_type in BOOKING_TYPES:
        if text.lower() == booking_type.lower():
            return booking_type
    return text


def is_pizza_records(booking_type: str) -> bool:
    """Exact (case/whitespace-insensitive) match against "pizza records"."""
    return normalize_text(booking_type).lower() == PIZZA_RECORDS.lower()


def default_service(booking_type: str) -> str:
    if canonical_booking_type(booking_type) == EXTERNAL:
        return DEFAULT_SERVICE[EXTERNAL]
    return DEFAULT_SERVICE[PIZZA_RECORDS]


def validate(booking: BookingRequest) -> dict[str, str]:
    """Return a field → message map; empty when the booking is acceptable.

    A filled honeypot yields only the ``honeypot`` entry so automated
    submitters learn nothing about the other rules.
    """
    if booking.company:
        return {"honeypot": ERROR_MESSAGES["honeypot"]}

    errors: dict[str, str] = {}

    if len(booking.name) < NAME_MIN_LENGTH:
        errors["name"] = ERROR_MESSAGES["name"]

    if not is_email(booking.email):
        errors["email"] = ERROR_MESSAGES["email"]

    if booking.raw_message_length > MESSAGE_MAX_LENGTH:
        errors["message"] = ERROR_MESSAGES["message_long"]
    elif len(normalize_text(booking.message)) < MESSAGE_MIN_LENGTH:
        errors["message"] = ERROR_MESSAGES["message_short"]
    elif count_links(booking.message) > MAX_LINKS:
        errors["message"] = ERROR_MESSAGES["message_links"]

    if not booking.resolved_service:
        errors["service"] = ERROR_MESSAGES["service"]

    if booking.booking_type not in BOOKING_TYPES:
        errors["bookingType"] = ERROR_MESSAGES["bookingType"]

    if booking.booking_type == EXTERNAL and len(booking.add_ons) > MAX_ADD_ONS:
        errors["addOns"] = ERROR_MESSAGES["addOns"]

    if booking.date and not DATE_RE.match(booking.date):
        errors["date"] = ERROR_MESSAGES["date"]

    return errors
