"""Booking inquiry endpoint.

POST forwards a validated booking to the MKM inboxes. GET is a
liveness/version probe, OPTIONS answers pre-flight, and every other method
gets a 405.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger

from mkm_booking.config import settings
from mkm_booking.services.booking_pipeline import run_pipeline, server_error
from mkm_booking.services.email_sender import Mailer, get_mailer
from mkm_booking.services.rate_limit import RateLimiter, client_address, get_rate_limiter

ROUTE = "/api/send-email"

router = APIRouter(prefix="/api", tags=["booking"])


@router.options("/send-email")
async def preflight():
    """Empty success for CORS pre-flight."""
    return Response(status_code=200)


@router.get("/send-email")
async def liveness():
    """Report that the route is up and which version is deployed."""
    return {"ok": True, "route": ROUTE, "version": settings.api_version}


@router.post("/send-email")
async def send_email(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
    mailer: Mailer = Depends(get_mailer),
):
    """Validate, rate limit, route and send one booking inquiry."""
    try:
        raw = await request.body()
        try:
            payload = json.loads(raw) if raw.strip() else {}
        except ValueError:
            logger.warning("Malformed JSON body ({} bytes)", len(raw))
            outcome = server_error("Malformed JSON body")
        else:
            peer = request.client.host if request.client else None
            outcome = await run_pipeline(
                payload,
                address=client_address(request.headers, peer),
                limiter=limiter,
                mailer=mailer,
            )
    except Exception as e:
        logger.exception("Email handler error")
        outcome = server_error(str(e) or type(e).__name__)

    return JSONResponse(outcome.body, status_code=outcome.status_code)
