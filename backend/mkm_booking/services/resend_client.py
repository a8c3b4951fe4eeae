"""Resend transactional email API client.

Sends exactly one request per booking. There is no retry: a failure is
reported to the caller, who may resubmit.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from mkm_booking.config import settings
from mkm_booking.models.email import EmailMessage, ProviderError, SendResult


class ResendClient:
    """Async HTTP client for the Resend ``/emails`` endpoint.

    Usage::

        async with ResendClient() as resend:
            result = await resend.send(message)

    A completed call always yields a ``SendResult``; non-2xx responses are
    returned as ``SendResult.error``. Transport failures (connection
    refused, timeouts) raise ``httpx.HTTPError``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key: str = api_key if api_key is not None else settings.resend_api_key
        self._base_url: str = base_url or settings.resend_base_url

        if not self._api_key:
            logger.warning("RESEND_API_KEY is not set; sends will be rejected by the provider")

        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._build_headers(),
            timeout=30.0,
            transport=transport,
        )

    def _build_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    # -- Context manager ---------------------------------------------------

    async def __aenter__(self) -> ResendClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -- Emails ------------------------------------------------------------

    async def send(self, message: EmailMessage) -> SendResult:
        """Send one email to all of ``message.to`` in a single call."""
        logger.debug("Resend POST /emails ({} recipients)", len(message.to))
        resp = await self._http.post("/emails", json=message.to_provider_payload())

        if 200 <= resp.status_code < 300:
            body = resp.json() if resp.content else {}
            return SendResult(id=body.get("id"))

        error = _parse_error(resp)
        logger.error("Resend API error {}: {}", resp.status_code, error.message)
        return SendResult(error=error)


def _parse_error(resp: httpx.Response) -> ProviderError:
    """Build a ProviderError from a Resend error response."""
    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        return ProviderError(
            name=str(body.get("name") or "application_error"),
            message=str(body.get("message") or resp.reason_phrase),
            status_code=resp.status_code,
        )
    return ProviderError(message=resp.text[:500] or resp.reason_phrase, status_code=resp.status_code)
