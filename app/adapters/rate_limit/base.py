"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the counting store can be swapped (e.g., Redis shared by several API
instances) with no change to callers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of an admission check.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window closes.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def admit(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether to admit it.

        Args:
            key: Client identity (e.g., client IP address).

        Returns:
            RateLimitDecision describing whether the request may proceed.

        Raises:
            RateLimitBackendError: If the counting store fails. Callers must
                treat this as a rejection.
        """
        raise NotImplementedError
