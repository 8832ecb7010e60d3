"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment before any app module reads settings: the testing
profile, the in-memory user store, and a quiet log level.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["APP_STORE_BACKEND"] = "memory"
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("APP_RATE_LIMIT_REQUESTS", "60")
os.environ.setdefault("APP_RATE_LIMIT_WINDOW_SECONDS", "60")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from app.adapters.store.in_memory import InMemoryUserStore


@pytest.fixture
def store() -> InMemoryUserStore:
    """Fresh, empty in-memory user store."""
    return InMemoryUserStore()


@pytest.fixture
def register_payload() -> dict:
    """Valid registration body (camelCase, as sent by clients)."""
    return {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "phoneNo": "081234567890",
        "email": "ada@example.com",
        "isAcceptTnc": True,
        "isAcceptPrivacyPolicy": True,
    }
