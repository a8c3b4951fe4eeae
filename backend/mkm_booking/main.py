from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from mkm_booking.routers import send_email
from mkm_booking.services.booking_pipeline import server_error
from mkm_booking.services.email_sender import get_mailer
from mkm_booking.services.rate_limit import get_rate_limiter

# Sent on every response, including errors.
RESPONSE_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST,GET,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Cache-Control": "no-store, max-age=0",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("MKM booking intake API started")
    try:
        yield
    finally:
        # Only close what was built while serving.
        if get_rate_limiter.cache_info().currsize:
            await get_rate_limiter().store.close()
        if get_mailer.cache_info().currsize:
            await get_mailer().aclose()


app = FastAPI(
    title="MKM Entertainment — Booking Intake",
    description="Validates booking inquiries and forwards them to the MKM inboxes",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def cors_and_no_store(request: Request, call_next):
    """Attach CORS/no-store headers and turn any uncaught failure into the generic 500."""
    try:
        response = await call_next(request)
    except Exception as e:
        logger.exception("Unhandled error on {} {}", request.method, request.url.path)
        outcome = server_error(str(e) or type(e).__name__)
        response = JSONResponse(outcome.body, status_code=outcome.status_code)
    response.headers.update(RESPONSE_HEADERS)
    return response


@app.exception_handler(StarletteHTTPException)
async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405 and request.url.path == send_email.ROUTE:
        return JSONResponse({"error": "Method not allowed"}, status_code=405, headers=exc.headers)
    return await http_exception_handler(request, exc)


app.include_router(send_email.router)
