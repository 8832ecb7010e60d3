"""Unit tests for in-memory rate limiter adapter."""

import threading
from unittest.mock import Mock, patch

import pytest

from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.errors import RateLimitBackendError


def test_allows_up_to_limit_in_same_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=3, window_seconds=60, clock=clock)

    assert limiter.admit("k").allowed is True
    assert limiter.admit("k").allowed is True
    result = limiter.admit("k")
    assert result.allowed is True
    assert result.remaining == 0


def test_first_request_opens_window_with_count_one() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=5, window_seconds=60, clock=clock)

    result = limiter.admit("k")

    assert result.allowed is True
    assert result.remaining == 4
    assert result.reset_at == 1060
    assert result.retry_after_seconds is None


def test_61st_request_in_window_is_rejected() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=60, window_seconds=60, clock=clock)

    for _ in range(60):
        assert limiter.admit("client").allowed is True

    clock.return_value = 1059.0
    blocked = limiter.admit("client")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.retry_after_seconds == 1


def test_blocks_when_over_limit() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=2, window_seconds=60, clock=clock)

    assert limiter.admit("k").allowed is True
    assert limiter.admit("k").allowed is True

    blocked = limiter.admit("k")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.retry_after_seconds is not None
    assert blocked.retry_after_seconds > 0


def test_resets_when_window_elapses() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=10, clock=clock)

    assert limiter.admit("k").allowed is True
    assert limiter.admit("k").allowed is False

    clock.return_value = 1010.0
    reopened = limiter.admit("k")
    assert reopened.allowed is True
    assert reopened.reset_at == 1020


def test_window_is_anchored_to_first_request_not_clock_boundary() -> None:
    # Window opens at 1005; a request at 1012 is still inside it even though
    # it crosses a multiple of the window size.
    clock = Mock(return_value=1005.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=10, clock=clock)

    assert limiter.admit("k").allowed is True

    clock.return_value = 1012.0
    assert limiter.admit("k").allowed is False

    clock.return_value = 1015.0
    assert limiter.admit("k").allowed is True


def test_isolated_by_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    assert limiter.admit("k1").allowed is True
    assert limiter.admit("k1").allowed is False

    assert limiter.admit("k2").allowed is True


def test_concurrent_admissions_never_exceed_limit() -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=50, window_seconds=60, clock=lambda: 1000.0)
    results: list[bool] = []
    results_lock = threading.Lock()

    def worker() -> None:
        for _ in range(20):
            allowed = limiter.admit("shared").allowed
            with results_lock:
                results.append(allowed)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 160
    assert results.count(True) == 50


def test_store_exhaustion_fails_closed() -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60)

    with patch(
        "app.adapters.rate_limit.in_memory._WindowState",
        side_effect=MemoryError,
    ):
        with pytest.raises(RateLimitBackendError) as exc_info:
            limiter.admit("new-client")

    assert exc_info.value.code == "rate_limit_store_error"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_seconds": 60},
        {"limit": 1, "window_seconds": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemoryFixedWindowRateLimiter(**kwargs)


def test_empty_key_rejected() -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60)

    with pytest.raises(ValueError):
        limiter.admit("")
