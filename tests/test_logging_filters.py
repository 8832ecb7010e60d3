"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from app.core.logging import JsonFormatter, SensitiveDataFilter, hash_identifier


def _capture_logger(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_personal_fields():
    """Ensure registrant personal data never reaches the log output."""

    logger, stream = _capture_logger("test_pii_redaction")

    logger.info(
        "registration.attempt",
        extra={
            "email": "ada@example.com",
            "first_name": "Ada",
            "phone_no": "081234567890",
            "marketing_code": "Ab3_x9Zq",
            "marketed_by": "boss@example.com",
            "attempts": 2,
        },
    )

    output = stream.getvalue()

    assert "ada@example.com" not in output
    assert "081234567890" not in output
    assert "Ab3_x9Zq" not in output
    assert "boss@example.com" not in output
    assert "[REDACTED]" in output
    assert json.loads(output)["attempts"] == 2


def test_sensitive_filter_redacts_secrets():
    logger, stream = _capture_logger("test_secret_redaction")

    logger.info(
        "store.connect",
        extra={
            "mongodb_password": "hunter2",
            "authorization": "Bearer abc",
        },
    )

    output = stream.getvalue()

    assert "hunter2" not in output
    assert "Bearer abc" not in output


def test_sensitive_filter_allows_safe_fields():
    """Verify safe fields pass through unmodified."""

    logger, stream = _capture_logger("test_safe_fields")

    logger.info(
        "safe_event",
        extra={
            "request_id": "req-123",
            "path": "/api/whosyourdaddy",
            "status": 200,
            "latency_ms": 150.5,
            "email_hash": hash_identifier("ada@example.com"),
        },
    )

    output = stream.getvalue()

    assert "req-123" in output
    assert "/api/whosyourdaddy" in output
    assert "200" in output
    assert "[REDACTED]" not in output


def test_sensitive_filter_redacts_nested_dicts():
    """Ensure nested sensitive fields are redacted."""

    logger, stream = _capture_logger("test_nested")

    logger.info(
        "nested_event",
        extra={
            "payload": {
                "firstName": "Ada",
                "phoneNo": "081234567890",
                "isAcceptTnc": True,
            },
            "users": [{"email": "a@x.com"}, {"email": "b@x.com"}],
        },
    )

    output = stream.getvalue()
    data = json.loads(output)

    assert "081234567890" not in output
    assert "a@x.com" not in output
    assert data["payload"]["isAcceptTnc"] is True
    assert data["payload"]["firstName"] == "[REDACTED]"
    assert data["users"] == [{"email": "[REDACTED]"}, {"email": "[REDACTED]"}]


def test_hash_identifier_is_stable_and_case_insensitive():
    digest = hash_identifier("Ada@Example.com ")

    assert digest == hash_identifier("ada@example.com")
    assert len(digest) == 16
    assert digest != hash_identifier("bob@example.com")
    assert hash_identifier(None) is None
    assert hash_identifier("") is None
