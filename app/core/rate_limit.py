"""Rate limiting middleware for the HTTP layer.

This module wires the rate limiting adapter in front of every route.

Design goals:
- Admission runs before any routing, body parsing or handler logic.
- Swap-friendly: the limiter lives on ``app.state.rate_limiter`` behind the
  AbstractRateLimiter interface and can be replaced (e.g., Redis).
- Fail closed: a failing counter store rejects the request.

Rate limiting strategy:
- Fixed-window limit per client address.
- Behind a trusted proxy, the address comes from X-Forwarded-For/X-Real-IP.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.config import AppSettings, settings
from app.core.errors import RateLimitBackendError
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)


def build_rate_limiter(app_settings: AppSettings | None = None) -> AbstractRateLimiter:
    """Build the process-wide limiter from configuration.

    Args:
        app_settings: Optional settings; defaults to the global settings.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    cfg = app_settings or settings.app
    return InMemoryFixedWindowRateLimiter(
        limit=cfg.rate_limit_requests,
        window_seconds=cfg.rate_limit_window_seconds,
    )


def client_address(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Resolve the client address used as the limiter key.

    Args:
        request: Incoming request.
        trust_forwarded_for: Honour proxy headers when set.

    Returns:
        str: Client IP address, or "unknown" when the transport has none.
    """

    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        real_ip = request.headers.get("x-real-ip")
        if real_ip and real_ip.strip():
            return real_ip.strip()

    return request.client.host if request.client else "unknown"


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client IPs."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _error_response(status_code: int, code: str, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "error",
            "message": message,
            "code": code,
            "request_id": get_request_id(),
        },
        headers=headers,
    )


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing the per-client rate limit.

    Counts one request against the caller's window. Throttled callers get
    HTTP 429; if the limiter's store fails the request is rejected with
    HTTP 500 rather than admitted.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response, or an error response when the
            request is not admitted.
    """

    if not settings.app.rate_limit_enabled:
        return await call_next(request)

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    key = client_address(
        request,
        trust_forwarded_for=settings.app.rate_limit_trust_forwarded_for,
    )
    key_hash = _hash_limiter_key(key)

    try:
        decision = limiter.admit(key)
    except RateLimitBackendError as exc:
        logger.error(
            "rate_limit.backend_error",
            extra={
                "key_hash": key_hash,
                "error_code": exc.code,
                "error_message": exc.message,
            },
        )
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "rate_limit_error",
            "Rate limit error",
        )

    if decision.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": key_hash,
                "limit": decision.limit,
                "remaining": decision.remaining,
            },
        )
        return await call_next(request)

    retry_after = decision.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": key_hash,
            "limit": decision.limit,
            "remaining": decision.remaining,
            "window_s": settings.app.rate_limit_window_seconds,
            "retry_after_s": retry_after,
            "path": request.url.path,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(decision.limit)
        headers["X-RateLimit-Remaining"] = str(decision.remaining)
        headers["X-RateLimit-Reset"] = str(decision.reset_at)

    return _error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "rate_limited",
        "Too many requests",
        headers=headers or None,
    )
