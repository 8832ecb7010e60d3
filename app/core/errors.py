"""Error types raised by services and store adapters.

Every failure the API reports is an ``AppError`` subclass; the exception
handlers map each subclass to one HTTP status and render the shared
``{status, message, code, request_id}`` envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured context attached to an error.

    Only surfaced to clients for 4xx responses; 5xx details stay in logs.
    """

    hint: str
    field: str
    attempts: int
    operation: str
    retry_after: float
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for registration, listing and store failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Client-facing message.
        details: Optional structured details.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # str(error) should read as the message in logs.
        super().__init__(self.message)


# 400
class ValidationAppError(AppError):
    """Input or configuration rejected before any write."""


# 409
class ConflictAppError(AppError):
    """The email is already registered."""


# 500
class CodeExhaustedAppError(AppError):
    """Every generated referral code collided with an existing one."""


class StoreAppError(AppError):
    """The user store is unreachable or a query failed."""


class DuplicateKeyStoreError(StoreAppError):
    """An insert hit a unique index; ``details["field"]`` names the key."""


class DuplicateEmailError(DuplicateKeyStoreError):
    """The email unique index rejected an insert."""


class RateLimitBackendError(AppError):
    """The request counter could not be updated."""
