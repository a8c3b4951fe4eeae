"""Booking intake form client.

Holds the booking "cart" (type, package, add-ons), validates with the same
rules as the server, throttles resubmission locally and posts the booking
to ``/api/send-email``.

The local throttle is a convenience for well-behaved users only; the
server enforces its own per-address cooldown.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from mkm_booking.catalog import EXTERNAL, EXTERNAL_ADD_ONS, PIZZA_RECORDS, booking_type_for_package
from mkm_booking.models.booking import BookingRequest
from mkm_booking.validation import validate as validate_booking

DEFAULT_API_URL = "http://localhost:8000/api/send-email"
THROTTLE_FILE = Path.home() / ".mkm_booking" / "last_submit.json"

MSG_SPAM = "Submission blocked by spam filter."
MSG_FIX_FIELDS = "Fix the highlighted fields."
MSG_WAIT = "Please wait a moment before sending again."
MSG_SENT = "Thanks! Your booking request was sent."
MSG_GENERIC = "Something went wrong sending your request."


class FormState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    BLOCKED = "blocked"
    THROTTLED = "throttled"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILED = "failed"


class SubmitResult(BaseModel):
    """How one submission cycle ended."""

    state: FormState
    message: str = ""
    errors: dict[str, str] = Field(default_factory=dict)
    recipients: list[str] = Field(default_factory=list)
    message_id: str | None = None
    ignored: bool = False  # another submission was already in flight

    @property
    def ok(self) -> bool:
        return self.state is FormState.SUCCESS


class SubmissionThrottle:
    """Timestamp of the last successful submission, persisted to a JSON file."""

    def __init__(
        self,
        path: Path = THROTTLE_FILE,
        *,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = path
        self.window_seconds = window_seconds
        self._clock = clock

    def last_submitted_at(self) -> float:
        """Last success timestamp, or 0 when none is recorded or the file is unreadable."""
        if not self.path.exists():
            return 0.0
        try:
            data = json.loads(self.path.read_text())
            return float(data.get("last_submit_ts", 0))
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Ignoring unreadable throttle file {}: {}", self.path, e)
            return 0.0

    def can_submit_now(self) -> bool:
        return self._clock() - self.last_submitted_at() >= self.window_seconds

    def record(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps({"last_submit_ts": self._clock()}))
        except OSError as e:
            logger.warning("Failed to save throttle file: {}", e)


class IntakeForm:
    """Client side of the booking form.

    Usage::

        form = IntakeForm("https://example.com/api/send-email")
        form.select_package("External – Full PA")
        form.toggle_add_on("Standard Lighting — $50")
        result = await form.submit({"name": "Jo Lee", "email": "jo@example.com", "message": "..."})
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        *,
        throttle: SubmissionThrottle | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.api_url = api_url
        self.throttle = throttle or SubmissionThrottle()
        self._transport = transport
        self._timeout = timeout

        self.booking_type: str = PIZZA_RECORDS
        self.selected_service: str = ""
        self.add_ons: list[str] = []

        self.state = FormState.IDLE
        self._in_flight = False

    # -- Cart --------------------------------------------------------------

    def set_booking_type(self, booking_type: str) -> None:
        """Switch booking type; clears the package, and add-ons for Pizza Records."""
        self.booking_type = booking_type
        self.selected_service = ""
        if booking_type == PIZZA_RECORDS:
            self.add_ons = []

    def select_package(self, title: str) -> None:
        booking_type = booking_type_for_package(title)
        if booking_type is not None and booking_type != self.booking_type:
            self.set_booking_type(booking_type)
        self.selected_service = title

    def toggle_add_on(self, key: str) -> None:
        if self.booking_type != EXTERNAL:
            return
        if key in self.add_ons:
            self.add_ons = [k for k in self.add_ons if k != key]
        else:
            self.add_ons = [*self.add_ons, key]

    def reset(self) -> None:
        self.selected_service = ""
        self.add_ons = []

    @staticmethod
    def available_add_ons() -> list[str]:
        return [a.key for a in EXTERNAL_ADD_ONS]

    # -- Validation --------------------------------------------------------

    def build_request(self, fields: Mapping[str, Any]) -> BookingRequest:
        """Merge typed-in fields with the cart state."""
        return BookingRequest.model_validate(
            {
                **fields,
                "bookingType": self.booking_type,
                "selectedService": self.selected_service,
                "addOns": list(self.add_ons),
            }
        )

    def validate(self, fields: Mapping[str, Any]) -> dict[str, str]:
        return validate_booking(self.build_request(fields))

    def can_submit_now(self) -> bool:
        return self.throttle.can_submit_now()

    @staticmethod
    def build_payload(booking: BookingRequest) -> dict[str, Any]:
        tag = "[Pizza Records]" if booking.booking_type == PIZZA_RECORDS else "[External]"
        service = booking.resolved_service
        return {
            "name": booking.name,
            "email": booking.email,
            "phone": booking.phone,
            "service": service,
            "date": booking.date,
            "message": booking.message,
            "bookingType": booking.booking_type,
            "selectedService": booking.selected_service,
            "addOns": booking.add_ons,
            "company": booking.company,
            "subject": f"{tag} {service} — Booking Request",
        }

    # -- Submission --------------------------------------------------------

    async def submit(self, fields: Mapping[str, Any]) -> SubmitResult:
        """Run one submission cycle. A call made while another is in flight is ignored."""
        if self._in_flight:
            return SubmitResult(state=self.state, ignored=True)

        self._in_flight = True
        try:
            result = await self._submit(fields)
        finally:
            self._in_flight = False
            self.state = FormState.IDLE
        return result

    async def _submit(self, fields: Mapping[str, Any]) -> SubmitResult:
        self.state = FormState.VALIDATING
        booking = self.build_request(fields)
        errors = validate_booking(booking)
        if errors:
            self.state = FormState.BLOCKED
            message = MSG_SPAM if "honeypot" in errors else MSG_FIX_FIELDS
            return SubmitResult(state=FormState.BLOCKED, message=message, errors=errors)

        if not self.can_submit_now():
            self.state = FormState.THROTTLED
            return SubmitResult(state=FormState.THROTTLED, message=MSG_WAIT)

        self.state = FormState.SUBMITTING
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as http:
                resp = await http.post(self.api_url, json=self.build_payload(booking))
        except httpx.HTTPError as e:
            logger.warning("Booking submission failed: {}", e)
            self.state = FormState.FAILED
            return SubmitResult(state=FormState.FAILED, message=MSG_GENERIC)

        body = _json_or_empty(resp)
        if not resp.is_success:
            self.state = FormState.FAILED
            details = body.get("details")
            field_errors = (
                {str(k): str(v) for k, v in details.items()}
                if resp.status_code in (400, 422) and isinstance(details, dict)
                else {}
            )
            return SubmitResult(
                state=FormState.FAILED,
                message=str(body.get("error") or f"Request failed ({resp.status_code})"),
                errors=field_errors,
            )

        self.throttle.record()
        self.reset()
        self.state = FormState.SUCCESS
        return SubmitResult(
            state=FormState.SUCCESS,
            message=MSG_SENT,
            recipients=body.get("to") or [],
            message_id=body.get("id"),
        )


def _json_or_empty(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
