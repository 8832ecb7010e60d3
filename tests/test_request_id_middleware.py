from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.app_factory import create_app
from app.core.middleware import SECURITY_HEADERS


@pytest.fixture
def client(store) -> TestClient:
    app = create_app(
        user_store=store,
        rate_limiter=InMemoryFixedWindowRateLimiter(limit=100, window_seconds=60),
        configure_logs=False,
    )
    return TestClient(app)


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None


def test_error_body_carries_request_id(client: TestClient, register_payload: dict):
    resp = client.post(
        "/api/register",
        json={**register_payload, "isAcceptTnc": False},
        headers={"X-Request-ID": "req-400"},
    )

    assert resp.status_code == 400
    assert resp.json()["request_id"] == "req-400"


def test_security_headers_on_every_response(client: TestClient):
    resp = client.get("/api/whosyourdaddy")

    for name, value in SECURITY_HEADERS.items():
        assert resp.headers[name] == value


def test_cors_allows_any_origin_without_credentials(client: TestClient):
    resp = client.get("/health", headers={"Origin": "https://landing.example"})

    assert resp.headers["access-control-allow-origin"] == "*"
    assert "access-control-allow-credentials" not in resp.headers


def test_access_log_line_per_request(client: TestClient, caplog: pytest.LogCaptureFixture):
    with caplog.at_level(logging.INFO, logger="app.access"):
        client.get("/health?probe=1", headers={"User-Agent": "pytest-agent"})

    records = [r for r in caplog.records if r.getMessage() == "request.completed"]
    assert len(records) == 1
    record = records[0]
    assert record.status == 200
    assert record.method == "GET"
    assert record.path == "/health"
    assert record.user_agent == "pytest-agent"
