"""Referral code generation and uniqueness resolution.

Codes are 6 random bytes rendered as unpadded URL-safe base64, i.e. 8
characters from ``A-Z a-z 0-9 - _`` (2**48 possible values).
"""

from __future__ import annotations

import base64
import logging
import secrets
from dataclasses import dataclass
from typing import Callable

from app.adapters.store.base import AbstractUserStore

logger = logging.getLogger(__name__)

CODE_BYTES = 6
CODE_LENGTH = 8
DEFAULT_MAX_ATTEMPTS = 5


def generate_referral_code() -> str:
    """Return a fresh random referral code.

    Uses the OS CSPRNG via ``secrets``; if it is unavailable the error
    propagates instead of falling back to a weaker source.
    """
    raw = secrets.token_bytes(CODE_BYTES)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class CodeFound:
    code: str
    attempts: int


@dataclass(frozen=True)
class CodeExhausted:
    attempts: int


CodeResolution = CodeFound | CodeExhausted


async def resolve_unique_code(
    store: AbstractUserStore,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    generate: Callable[[], str] = generate_referral_code,
) -> CodeResolution:
    """Find a referral code that no stored user holds.

    Args:
        store: User store queried for collisions.
        max_attempts: Total candidates to try before giving up.
        generate: Candidate source (injectable for tests).

    Returns:
        CodeFound with the free code, or CodeExhausted if every candidate
        collided.

    Raises:
        ValueError: If max_attempts is < 1.
        StoreAppError: If the store query fails.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    for attempt in range(1, max_attempts + 1):
        candidate = generate()
        if not await store.referral_code_exists(candidate):
            if attempt > 1:
                logger.info("referral_code.resolved_after_retry", extra={"attempts": attempt})
            return CodeFound(code=candidate, attempts=attempt)

        logger.warning("referral_code.collision", extra={"attempt": attempt})

    return CodeExhausted(attempts=max_attempts)
