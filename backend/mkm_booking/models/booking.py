from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from mkm_booking.catalog import EXTERNAL
from mkm_booking.validation import (
    as_text,
    canonical_booking_type,
    default_service,
    is_pizza_records,
    normalize_message,
    normalize_text,
)

_TEXT_FIELDS = (
    "name",
    "email",
    "phone",
    "bookingType",
    "selectedService",
    "service",
    "date",
    "message",
    "company",
    "subject",
)


class BookingRequest(BaseModel):
    """A booking inquiry as submitted by the intake form.

    Accepts the loosely-shaped JSON the form sends: missing keys default to
    empty, ``null`` and scalars are coerced to text, and a non-list
    ``addOns`` becomes empty. Normalization happens here, once, so the rest
    of the pipeline only ever sees clean values.
    """

    name: str = ""
    email: str = ""
    phone: str = ""
    booking_type: str = Field(default="", alias="bookingType")
    selected_service: str = Field(default="", alias="selectedService")
    service: str = ""
    add_ons: list[str] = Field(default_factory=list, alias="addOns")
    date: str = ""
    message: str = ""
    company: str = ""  # honeypot
    subject: str = ""
    # Length of the message exactly as submitted, before any cleanup.
    raw_message_length: int = Field(default=0, exclude=True)

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def _coerce_payload(cls, data: Any) -> dict[str, Any]:
        if not isinstance(data, dict):
            return {}
        coerced = dict(data)
        for key in _TEXT_FIELDS:
            for name in {key, _snake(key)}:
                if name in coerced:
                    coerced[name] = as_text(coerced[name])
        for name in ("addOns", "add_ons"):
            if name in coerced:
                raw = coerced[name]
                coerced[name] = [as_text(item) for item in raw] if isinstance(raw, list) else []
        coerced["raw_message_length"] = len(coerced.get("message", ""))
        return coerced

    @field_validator("name", "email", "phone", "selected_service", "service", "date", "company", "subject")
    @classmethod
    def _collapse_whitespace(cls, value: str) -> str:
        return normalize_text(value)

    @field_validator("booking_type")
    @classmethod
    def _canonical_booking_type(cls, value: str) -> str:
        return canonical_booking_type(value)

    @field_validator("message")
    @classmethod
    def _clean_message(cls, value: str) -> str:
        return normalize_message(value)

    @field_validator("add_ons")
    @classmethod
    def _clean_add_ons(cls, value: list[str]) -> list[str]:
        return [item for item in (normalize_text(v) for v in value) if item]

    @model_validator(mode="after")
    def _drop_add_ons_unless_external(self) -> BookingRequest:
        # Add-ons only exist for External bookings.
        if self.booking_type != EXTERNAL:
            self.add_ons = []
        return self

    @property
    def resolved_service(self) -> str:
        """Chosen package, falling back to the booking type's default."""
        return self.selected_service or self.service or default_service(self.booking_type)

    @property
    def is_pizza_records(self) -> bool:
        return is_pizza_records(self.booking_type)


def _snake(key: str) -> str:
    return {
        "bookingType": "booking_type",
        "selectedService": "selected_service",
    }.get(key, key)
