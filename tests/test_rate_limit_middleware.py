"""Tests for the rate limit middleware wired in front of every route."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.app_factory import create_app
from app.core.config import settings
from app.core.errors import RateLimitBackendError
from app.core.rate_limit import client_address


class _BrokenLimiter(AbstractRateLimiter):
    def admit(self, key: str) -> RateLimitDecision:
        raise RateLimitBackendError(code="rate_limit_store_error", message="boom")


class _RecordingLimiter(AbstractRateLimiter):
    def __init__(self) -> None:
        self.keys: list[str] = []

    def admit(self, key: str) -> RateLimitDecision:
        self.keys.append(key)
        return RateLimitDecision(allowed=True, limit=60, remaining=59, reset_at=0, retry_after_seconds=None)


def _build_client(store, limiter: AbstractRateLimiter) -> TestClient:
    app: FastAPI = create_app(user_store=store, rate_limiter=limiter, configure_logs=False)
    return TestClient(app)


def test_throttled_request_gets_429_with_error_body(store) -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=2, window_seconds=60, clock=clock)
    client = _build_client(store, limiter)

    assert client.get("/api/whosyourdaddy").status_code == 200
    assert client.get("/api/whosyourdaddy").status_code == 200

    resp = client.get("/api/whosyourdaddy")

    assert resp.status_code == 429
    body = resp.json()
    assert body["status"] == "error"
    assert body["message"] == "Too many requests"
    assert resp.headers["Retry-After"] == "60"
    assert resp.headers["X-RateLimit-Limit"] == "2"
    assert resp.headers["X-RateLimit-Remaining"] == "0"


def test_limit_is_shared_across_routes(store, register_payload) -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=lambda: 1000.0)
    client = _build_client(store, limiter)

    assert client.post("/api/register", json=register_payload).status_code == 200

    resp = client.get("/api/whosyourdaddy")
    assert resp.status_code == 429


def test_rejected_before_body_validation(store) -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=lambda: 1000.0)
    client = _build_client(store, limiter)
    client.get("/health")

    resp = client.post("/api/register", content=b"{not json", headers={"Content-Type": "application/json"})

    assert resp.status_code == 429
    assert len(store) == 0


def test_window_reset_admits_again(store) -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
    client = _build_client(store, limiter)

    assert client.get("/health").status_code == 200
    assert client.get("/health").status_code == 429

    clock.return_value = 1060.0
    assert client.get("/health").status_code == 200


def test_backend_failure_fails_closed(store, register_payload) -> None:
    client = _build_client(store, _BrokenLimiter())

    resp = client.post("/api/register", json=register_payload)

    assert resp.status_code == 500
    assert resp.json()["status"] == "error"
    assert resp.json()["message"] == "Rate limit error"
    assert len(store) == 0


def test_throttled_response_keeps_request_id_and_security_headers(store) -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=lambda: 1000.0)
    client = _build_client(store, limiter)
    client.get("/health")

    resp = client.get("/health", headers={"X-Request-ID": "req-throttled"})

    assert resp.status_code == 429
    assert resp.headers["X-Request-ID"] == "req-throttled"
    assert resp.json()["request_id"] == "req-throttled"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_disabled_rate_limit_skips_limiter(store, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.app, "rate_limit_enabled", False)
    limiter = _RecordingLimiter()
    client = _build_client(store, limiter)

    assert client.get("/health").status_code == 200
    assert limiter.keys == []


def test_keys_by_client_address(store) -> None:
    limiter = _RecordingLimiter()
    client = _build_client(store, limiter)

    client.get("/health")

    assert limiter.keys == ["testclient"]


def test_forwarded_for_used_only_when_trusted(store, monkeypatch: pytest.MonkeyPatch) -> None:
    limiter = _RecordingLimiter()
    client = _build_client(store, limiter)
    headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}

    client.get("/health", headers=headers)
    monkeypatch.setattr(settings.app, "rate_limit_trust_forwarded_for", True)
    client.get("/health", headers=headers)

    assert limiter.keys == ["testclient", "203.0.113.7"]


def test_client_address_falls_back_to_real_ip() -> None:
    request = Mock()
    request.headers = {"x-real-ip": " 198.51.100.4 "}
    request.client = None

    assert client_address(request, trust_forwarded_for=True) == "198.51.100.4"
    assert client_address(request) == "unknown"
