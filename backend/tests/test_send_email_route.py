import httpx
from httpx import ASGITransport, AsyncClient

from mkm_booking.config import settings
from mkm_booking.main import app, lifespan
from mkm_booking.services.email_sender import get_mailer
from mkm_booking.services.rate_limit import get_rate_limiter

ROUTE = "/api/send-email"
CALLER = {"X-Forwarded-For": "203.0.113.7"}


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def test_pizza_records_booking_goes_to_both_inboxes(api, mailer, valid_payload):
    async with _client(api) as client:
        response = await client.post(ROUTE, json=valid_payload, headers=CALLER)

    assert response.status_code == 200, response.text
    assert response.json() == {
        "ok": True,
        "version": settings.api_version,
        "to": [settings.mkm_inbox, settings.pizza_records_inbox],
        "id": "msg_123",
    }
    assert len(mailer.sent) == 1
    assert mailer.sent[0].to == [settings.mkm_inbox, settings.pizza_records_inbox]
    assert mailer.sent[0].subject == "[Pizza Records] Pizza Records – Basic — Booking Request"
    assert mailer.sent[0].reply_to == "jo@example.com"


async def test_external_booking_goes_to_mkm_only(api, mailer, valid_payload):
    valid_payload["bookingType"] = "External"
    async with _client(api) as client:
        response = await client.post(ROUTE, json=valid_payload, headers=CALLER)

    assert response.status_code == 200, response.text
    assert response.json()["to"] == [settings.mkm_inbox]
    assert mailer.sent[0].to == [settings.mkm_inbox]


async def test_honeypot_is_rejected_without_sending(api, mailer, limiter, valid_payload):
    valid_payload["company"] = "AcmeBot"
    async with _client(api) as client:
        response = await client.post(ROUTE, json=valid_payload, headers=CALLER)

    assert response.status_code == 400
    assert response.json() == {
        "ok": False,
        "error": "Invalid submission",
        "details": {"honeypot": "Spam detected."},
    }
    assert mailer.sent == []
    assert await limiter.store.get("203.0.113.7") is None


async def test_short_message_is_a_field_error(api, mailer, limiter, valid_payload):
    valid_payload["message"] = "too short"
    async with _client(api) as client:
        response = await client.post(ROUTE, json=valid_payload, headers=CALLER)

    assert response.status_code == 422
    body = response.json()
    assert body["ok"] is False
    assert body["error"] == "Invalid submission"
    assert "message" in body["details"]
    assert mailer.sent == []
    # validation failures do not consume the caller's cooldown
    assert await limiter.store.get("203.0.113.7") is None


async def test_rapid_resubmission_is_rate_limited(api, mailer, valid_payload):
    async with _client(api) as client:
        first = await client.post(ROUTE, json=valid_payload, headers=CALLER)
        second = await client.post(ROUTE, json=valid_payload, headers=CALLER)

    assert first.status_code == 200
    assert second.status_code == 429
    assert second.json() == {"ok": False, "error": "Too many requests. Try again shortly."}
    assert len(mailer.sent) == 1


async def test_resubmission_after_cooldown_is_accepted(api, mailer, clock, valid_payload):
    async with _client(api) as client:
        first = await client.post(ROUTE, json=valid_payload, headers=CALLER)
        clock.advance(60)
        second = await client.post(ROUTE, json=valid_payload, headers=CALLER)

    assert (first.status_code, second.status_code) == (200, 200)
    assert len(mailer.sent) == 2


async def test_other_callers_are_not_throttled(api, valid_payload):
    async with _client(api) as client:
        first = await client.post(ROUTE, json=valid_payload, headers=CALLER)
        other = await client.post(ROUTE, json=valid_payload, headers={"X-Real-IP": "198.51.100.1"})

    assert (first.status_code, other.status_code) == (200, 200)


async def test_provider_error_maps_to_502(api, mailer, valid_payload):
    mailer.fail_with("Invalid `to` field.")
    async with _client(api) as client:
        response = await client.post(ROUTE, json=valid_payload, headers=CALLER)

    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "Email send failed"
    assert body["details"]["message"] == "Invalid `to` field."


async def test_provider_exception_maps_to_500(api, mailer, valid_payload):
    mailer.exc = httpx.ConnectError("connection refused")
    async with _client(api) as client:
        response = await client.post(ROUTE, json=valid_payload, headers=CALLER)

    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "Server error", "details": "connection refused"}
    assert len(mailer.sent) == 1


async def test_malformed_json_maps_to_500(api, mailer):
    async with _client(api) as client:
        response = await client.post(
            ROUTE, content=b"{not json", headers={**CALLER, "Content-Type": "application/json"}
        )

    assert response.status_code == 500
    assert response.json()["error"] == "Server error"
    assert mailer.sent == []


async def test_empty_body_is_a_validation_failure(api, mailer):
    async with _client(api) as client:
        response = await client.post(ROUTE, content=b"", headers=CALLER)

    assert response.status_code == 422
    assert mailer.sent == []


async def test_email_body_preserves_message_newlines(api, mailer, valid_payload):
    valid_payload["message"] = "First line of the request\r\nSecond line of the request"
    async with _client(api) as client:
        await client.post(ROUTE, json=valid_payload, headers=CALLER)

    assert mailer.sent[0].text.endswith("Message:\nFirst line of the request\nSecond line of the request")


async def test_get_reports_liveness_and_version(api):
    async with _client(api) as client:
        response = await client.get(ROUTE)

    assert response.status_code == 200
    assert response.json() == {"ok": True, "route": ROUTE, "version": settings.api_version}


async def test_options_is_an_empty_success(api):
    async with _client(api) as client:
        response = await client.options(ROUTE)

    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "POST,GET,OPTIONS"


async def test_other_methods_are_not_allowed(api, mailer):
    async with _client(api) as client:
        for method in ("PUT", "PATCH", "DELETE", "TRACE", "PROPFIND", "PURGE"):
            response = await client.request(method, ROUTE)
            assert response.status_code == 405, method
            assert response.json() == {"error": "Method not allowed"}, method
            assert response.headers["access-control-allow-origin"] == "*"

        head = await client.head(ROUTE)
        assert head.status_code == 405
    assert mailer.sent == []


async def test_unknown_paths_keep_the_default_not_found(api):
    async with _client(api) as client:
        response = await client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}


async def test_dependency_failure_degrades_to_generic_500(api, mailer, valid_payload):
    def broken_limiter():
        raise ValueError("Redis URL must specify one of the following schemes")

    api.dependency_overrides[get_rate_limiter] = broken_limiter
    async with _client(api) as client:
        response = await client.post(ROUTE, json=valid_payload, headers=CALLER)

    assert response.status_code == 500
    assert response.json() == {
        "ok": False,
        "error": "Server error",
        "details": "Redis URL must specify one of the following schemes",
    }
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["cache-control"] == "no-store, max-age=0"
    assert mailer.sent == []


async def test_shutdown_does_not_build_unused_clients():
    get_mailer.cache_clear()
    get_rate_limiter.cache_clear()

    async with lifespan(app):
        pass

    assert get_mailer.cache_info().currsize == 0
    assert get_rate_limiter.cache_info().currsize == 0


async def test_shutdown_closes_clients_that_were_built(monkeypatch):
    get_mailer.cache_clear()
    get_rate_limiter.cache_clear()
    closed = []
    monkeypatch.setattr(settings, "rate_limit_redis_url", "")
    monkeypatch.setattr(settings, "email_transport", "smtp")

    limiter = get_rate_limiter()
    mailer = get_mailer()

    async def close_store():
        closed.append("store")

    async def close_mailer():
        closed.append("mailer")

    monkeypatch.setattr(limiter.store, "close", close_store)
    monkeypatch.setattr(mailer, "aclose", close_mailer)

    async with lifespan(app):
        pass

    assert closed == ["store", "mailer"]
    get_mailer.cache_clear()
    get_rate_limiter.cache_clear()


async def test_every_response_disables_caching(api, valid_payload):
    async with _client(api) as client:
        ok = await client.post(ROUTE, json=valid_payload, headers=CALLER)
        limited = await client.post(ROUTE, json=valid_payload, headers=CALLER)

    for response in (ok, limited):
        assert response.headers["cache-control"] == "no-store, max-age=0"
        assert response.headers["access-control-allow-origin"] == "*"
