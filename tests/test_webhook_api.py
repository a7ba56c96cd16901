import json

import pytest
from fastapi.testclient import TestClient

from leadhook.core.exceptions import ConfigurationError
from leadhook.main import create_app

from tests.conftest import ORIGIN, MemoryLeadStore, lead_body, make_settings, signed_headers

WEBHOOK = "/api/leads/webhook"


def test_signed_lead_is_created(client, store, clock):
    body = lead_body(name="Alice", email="a@b.com", city="Austin")
    response = client.post(WEBHOOK, content=body, headers=signed_headers(body, clock.now))

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Lead received successfully"
    assert data["leadId"] == store.records[0]["id"]
    assert response.headers["access-control-allow-origin"] == ORIGIN
    assert response.headers["x-request-id"]

    record = store.records[0]
    assert record["name"] == "Alice"
    assert record["city"] == "Austin"
    assert record["metadata"]["ip_address"] == "203.0.113.7"


def test_replay_after_six_minutes_is_expired(client, store, clock):
    body = lead_body()
    headers = signed_headers(body, clock.now)
    assert client.post(WEBHOOK, content=body, headers=headers).status_code == 201

    clock.advance(6 * 60 * 1000)
    response = client.post(WEBHOOK, content=body, headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "request_expired"
    assert len(store.records) == 1


def test_flipped_body_byte_is_invalid_signature(client, store, clock):
    body = lead_body()
    headers = signed_headers(body, clock.now)
    tampered = body.replace(b"Alice", b"Alicf")

    response = client.post(WEBHOOK, content=tampered, headers=headers)

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "code": "invalid_signature",
        "message": "Invalid signature",
    }
    assert not store.records


def test_twenty_first_request_is_rate_limited(client, clock):
    body = lead_body()
    for _ in range(20):
        response = client.post(WEBHOOK, content=body, headers=signed_headers(body, clock.now))
        assert response.status_code == 201

    response = client.post(WEBHOOK, content=body, headers=signed_headers(body, clock.now))

    assert response.status_code == 429
    assert response.json()["code"] == "rate_limit_exceeded"
    assert response.headers["retry-after"] == "60"

    other = client.post(
        WEBHOOK, content=body, headers=signed_headers(body, clock.now, ip="198.51.100.9")
    )
    assert other.status_code == 201


def test_disallowed_origin_gets_no_cors_echo(client, clock):
    body = lead_body()
    response = client.post(
        WEBHOOK, content=body, headers=signed_headers(body, clock.now, origin="https://evil.net")
    )

    assert response.status_code == 403
    assert response.json()["code"] == "origin_not_allowed"
    assert "access-control-allow-origin" not in response.headers


def test_invalid_api_key(client, clock):
    body = lead_body()
    response = client.post(
        WEBHOOK, content=body, headers=signed_headers(body, clock.now, api_key="wrong")
    )
    assert response.status_code == 401
    assert response.json()["code"] == "invalid_api_key"
    assert response.headers["access-control-allow-origin"] == ORIGIN


def test_missing_security_headers(client, clock):
    body = lead_body()
    headers = signed_headers(body, clock.now)
    del headers["X-Signature"]
    response = client.post(WEBHOOK, content=body, headers=headers)
    assert response.status_code == 401
    assert response.json()["code"] == "missing_security_headers"


def test_empty_body(client, clock):
    headers = signed_headers(b"", clock.now)
    response = client.post(WEBHOOK, content=b"", headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "empty_body"


def test_malformed_json(client, clock):
    body = b'{"name": "Alice",'
    response = client.post(WEBHOOK, content=body, headers=signed_headers(body, clock.now))
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_json"


def test_validation_failed_lists_errors(client, clock):
    body = json.dumps({"name": "Al"}).encode()
    response = client.post(WEBHOOK, content=body, headers=signed_headers(body, clock.now))

    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "validation_failed"
    assert data["details"]["errors"] == [
        {"field": "email", "message": "Either email or phone must be provided"}
    ]


def test_preflight_needs_no_credentials(client):
    response = client.options(WEBHOOK, headers={"Origin": "https://anything.test"})

    assert response.status_code == 200
    assert response.json() == {}
    assert response.headers["access-control-allow-origin"] == "https://anything.test"
    assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
    assert response.headers["access-control-max-age"] == "86400"


def test_storage_failure_returns_500(settings, rate_limiter, clock):
    store = MemoryLeadStore(fail_with=RuntimeError("connection reset"))
    app = create_app(settings=settings, store=store, rate_limiter=rate_limiter, clock=clock)

    with TestClient(app) as client:
        body = lead_body()
        response = client.post(WEBHOOK, content=body, headers=signed_headers(body, clock.now))

    assert response.status_code == 500
    assert response.json()["code"] == "storage_error"


def test_request_id_is_propagated(client, clock):
    body = lead_body()
    headers = signed_headers(body, clock.now)
    headers["X-Request-ID"] = "req-123"
    response = client.post(WEBHOOK, content=body, headers=headers)
    assert response.headers["x-request-id"] == "req-123"


@pytest.mark.parametrize(
    "overrides, missing",
    [
        ({"webhook_secret": None}, "WEBHOOK_SECRET"),
        ({"allowed_origins": ""}, "ALLOWED_ORIGINS"),
        ({"api_keys": ""}, "API_KEYS"),
        ({"database_url": None}, "DATABASE_URL"),
    ],
)
def test_startup_fails_without_required_configuration(overrides, missing):
    app = create_app(settings=make_settings(**overrides))

    with pytest.raises(ConfigurationError) as exc_info:
        with TestClient(app):
            pass

    assert missing in exc_info.value.missing


def test_injected_store_does_not_need_database_url(store, rate_limiter, clock):
    app = create_app(
        settings=make_settings(database_url=None),
        store=store,
        rate_limiter=rate_limiter,
        clock=clock,
    )
    with TestClient(app) as client:
        body = lead_body()
        response = client.post(WEBHOOK, content=body, headers=signed_headers(body, clock.now))
    assert response.status_code == 201


def test_long_field_values_are_stored(client, store, clock):
    body = lead_body(name="A" * 250, phone="+34 600 000 000 ext. 1234 (office line)", message="x" * 6000)
    response = client.post(WEBHOOK, content=body, headers=signed_headers(body, clock.now))

    assert response.status_code == 201
    assert store.records[0]["notes"] == "x" * 6000
    assert len(store.records[0]["name"]) == 250
