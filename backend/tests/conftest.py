from __future__ import annotations

import pytest

from mkm_booking.main import app
from mkm_booking.models.email import EmailMessage, ProviderError, SendResult
from mkm_booking.services.email_sender import get_mailer
from mkm_booking.services.rate_limit import MemoryRateLimitStore, RateLimiter, get_rate_limiter


class RecordingMailer:
    """Mailer double: records every message and returns a canned outcome."""

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []
        self.result = SendResult(id="msg_123")
        self.exc: Exception | None = None

    def fail_with(self, message: str, status_code: int = 422) -> None:
        self.result = SendResult(error=ProviderError(name="validation_error", message=message, status_code=status_code))

    async def send(self, message: EmailMessage) -> SendResult:
        self.sent.append(message)
        if self.exc is not None:
            raise self.exc
        return self.result

    async def aclose(self) -> None:
        return None


class ManualClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def limiter(clock: ManualClock) -> RateLimiter:
    return RateLimiter(MemoryRateLimitStore(), window_seconds=60.0, clock=clock)


@pytest.fixture
def api(mailer: RecordingMailer, limiter: RateLimiter):
    """The FastAPI app with the mailer and rate limiter swapped for test doubles."""
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def valid_payload() -> dict:
    return {
        "name": "Jo Lee",
        "email": "jo@example.com",
        "message": "We'd like a DJ set for our anniversary party please",
        "bookingType": "Pizza Records",
        "service": "Pizza Records – Basic",
    }
