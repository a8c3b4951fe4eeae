from typing import Any

from pydantic import BaseModel, Field


class EmailMessage(BaseModel):
    """One outbound booking email, handed to the provider exactly once."""

    from_address: str  # e.g. "MKM Website <no-reply@mkmentertainmentllc.com>"
    to: list[str]
    subject: str
    text: str
    reply_to: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)

    def to_provider_payload(self) -> dict[str, Any]:
        """Shape expected by the Resend ``POST /emails`` endpoint."""
        payload: dict[str, Any] = {
            "from": self.from_address,
            "to": self.to,
            "subject": self.subject,
            "text": self.text,
            "headers": self.headers,
        }
        if self.reply_to:
            payload["reply_to"] = self.reply_to
        return payload


class ProviderError(BaseModel):
    """Application-level failure reported by the email provider."""

    name: str = "application_error"
    message: str
    status_code: int | None = None


class SendResult(BaseModel):
    """Outcome of a completed provider call: a message id or an error."""

    id: str | None = None
    error: ProviderError | None = None
