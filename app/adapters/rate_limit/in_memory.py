"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: each key has its own lock, so distinct clients never wait on
  each other; a registry lock only guards creation of new keys.
- Windows start at a key's first request and are never evicted, so memory
  grows with the number of distinct clients seen.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from app.core.errors import RateLimitBackendError


@dataclass
class _WindowState:
    window_start: float
    count: int
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    A key's window opens on its first request and lasts ``window_seconds``.
    Within the window at most ``limit`` requests are admitted; once the
    window has elapsed the next request opens a fresh one and is admitted.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of admitted requests per window.
            window_seconds: Size of the fixed window in seconds.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._registry_lock = threading.Lock()
        self._state_by_key: dict[str, _WindowState] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def _get_or_create_state(self, key: str, now: float) -> tuple[_WindowState, bool]:
        """Return the state for key, creating it on first sight.

        Returns:
            Tuple of (state, created). A freshly created state already counts
            the current request.
        """
        state = self._state_by_key.get(key)
        if state is not None:
            return state, False

        with self._registry_lock:
            state = self._state_by_key.get(key)
            if state is not None:
                return state, False
            state = _WindowState(window_start=now, count=1)
            self._state_by_key[key] = state
            return state, True

    def _build_allowed_result(self, *, count: int, reset_at: float) -> RateLimitDecision:
        """Build a RateLimitDecision for an admitted request."""
        return RateLimitDecision(
            allowed=True,
            limit=self._limit,
            remaining=max(0, self._limit - count),
            reset_at=int(math.ceil(reset_at)),
            retry_after_seconds=None,
        )

    def _build_blocked_result(self, *, now: float, reset_at: float) -> RateLimitDecision:
        """Build a RateLimitDecision for a rejected request."""
        retry_after = max(1, int(math.ceil(reset_at - now)))
        return RateLimitDecision(
            allowed=False,
            limit=self._limit,
            remaining=0,
            reset_at=int(math.ceil(reset_at)),
            retry_after_seconds=retry_after,
        )

    def admit(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether to admit it.

        Args:
            key: Client identity for rate limiting.

        Returns:
            RateLimitDecision with the admission decision and metadata.

        Raises:
            ValueError: If key is empty.
            RateLimitBackendError: If the counter store cannot grow.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        try:
            state, created = self._get_or_create_state(key, now)
        except MemoryError as exc:
            raise RateLimitBackendError(
                code="rate_limit_store_error",
                message="Rate limit counter store is exhausted",
                details={"operation": "create_window"},
            ) from exc

        with state.lock:
            if created:
                return self._build_allowed_result(
                    count=state.count,
                    reset_at=state.window_start + self._window_seconds,
                )

            if now - state.window_start >= self._window_seconds:
                state.window_start = now
                state.count = 1
                return self._build_allowed_result(
                    count=state.count,
                    reset_at=now + self._window_seconds,
                )

            state.count += 1
            reset_at = state.window_start + self._window_seconds
            if state.count <= self._limit:
                return self._build_allowed_result(count=state.count, reset_at=reset_at)

            return self._build_blocked_result(now=now, reset_at=reset_at)
