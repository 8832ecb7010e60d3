"""Registration workflow.

Turns a validated RegisterRequest into a stored UserRecord:
- Terms and privacy acceptance check
- Email uniqueness check (backed by a unique index at insert time)
- Best-effort referral attribution from an optional marketing code
- Fresh unique referral code for the new user
- Single-document insert (atomic, no compensation needed)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from app.adapters.store.base import AbstractUserStore
from app.core.errors import (
    CodeExhaustedAppError,
    ConflictAppError,
    DuplicateEmailError,
    DuplicateKeyStoreError,
    StoreAppError,
    ValidationAppError,
)
from app.core.logging import hash_identifier
from app.schemas.users import RegisterRequest, UserRecord
from app.services.referral_codes import (
    DEFAULT_MAX_ATTEMPTS,
    CodeExhausted,
    resolve_unique_code,
)

logger = logging.getLogger(__name__)

# Longer codes cannot have been issued; they are looked up as unknown.
MAX_REFERRAL_CODE_LENGTH = 64


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a successful registration.

    Attributes:
        marketing_code: Referral code assigned to the new user.
        marketed_by: Referrer's email, or None when no valid code was given.
    """

    marketing_code: str
    marketed_by: str | None


class RegistrationService:
    """Service registering new users against an AbstractUserStore.

    Attributes:
        store: User store adapter.
        max_code_attempts: Attempt budget for finding a free referral code.
    """

    def __init__(
        self,
        store: AbstractUserStore,
        *,
        max_code_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.max_code_attempts = max_code_attempts
        self._clock = clock

    def _validate_acceptance(self, request: RegisterRequest) -> None:
        """Require both acceptance flags to be affirmatively set.

        Raises:
            ValidationAppError: If either flag is false.
        """
        if request.is_accept_tnc is True and request.is_accept_privacy_policy is True:
            return

        raise ValidationAppError(
            code="terms_not_accepted",
            message="Must accept terms and conditions and privacy policy",
            details={
                "context": {
                    "isAcceptTnc": request.is_accept_tnc,
                    "isAcceptPrivacyPolicy": request.is_accept_privacy_policy,
                }
            },
        )

    async def _ensure_email_available(self, email: str) -> None:
        if await self.store.email_exists(email):
            raise ConflictAppError(
                code="email_already_registered",
                message="Email already registered",
            )

    async def _resolve_referrer(self, marketing_code: str | None) -> str | None:
        """Return the referrer's email for a marketing code, if any.

        Unknown or blank codes yield None; store failures propagate.
        """
        if marketing_code is None or not marketing_code.strip():
            return None

        code = marketing_code.strip()
        if len(code) > MAX_REFERRAL_CODE_LENGTH:
            logger.info("registration.referral_code_unknown", extra={"code_length": len(code)})
            return None

        referrer = await self.store.find_by_referral_code(code)
        if referrer is None:
            logger.info("registration.referral_code_unknown")
            return None
        return referrer.email

    async def _assign_code(self) -> str:
        resolution = await resolve_unique_code(
            self.store,
            max_attempts=self.max_code_attempts,
        )
        if isinstance(resolution, CodeExhausted):
            logger.error(
                "registration.referral_code_exhausted",
                extra={"attempts": resolution.attempts},
            )
            raise CodeExhaustedAppError(
                code="referral_code_exhausted",
                message="Internal server error",
                details={"attempts": resolution.attempts},
            )
        return resolution.code

    async def register(self, request: RegisterRequest) -> RegistrationResult:
        """Register a new user.

        Args:
            request: Field-validated registration payload.

        Returns:
            RegistrationResult with the assigned referral code and referrer.

        Raises:
            ValidationAppError: If terms or privacy policy are not accepted.
            ConflictAppError: If the email is already registered.
            CodeExhaustedAppError: If no free referral code was found.
            StoreAppError: If the store fails.
        """
        email = normalize_email(str(request.email))
        email_hash = hash_identifier(email)

        logger.info("registration.attempt", extra={"email_hash": email_hash})

        # Step 1: Terms and privacy policy
        self._validate_acceptance(request)

        # Step 2: Email uniqueness (pre-write check)
        await self._ensure_email_available(email)

        # Step 3: Referral attribution (best effort)
        marketed_by = await self._resolve_referrer(request.marketing_code)

        # Step 4: Own referral code
        marketing_code = await self._assign_code()

        # Step 5: Persist
        record = UserRecord(
            first_name=request.first_name,
            last_name=request.last_name,
            phone_no=request.phone_no,
            email=email,
            is_accept_tnc=request.is_accept_tnc,
            is_accept_privacy_policy=request.is_accept_privacy_policy,
            marketing_code=marketing_code,
            marketed_by=marketed_by,
            created_at=self._clock(),
        )

        try:
            await self.store.insert(record)
        except DuplicateEmailError as exc:
            # Lost a race with a concurrent registration for the same email.
            logger.warning("registration.email_conflict_on_insert", extra={"email_hash": email_hash})
            raise ConflictAppError(
                code="email_already_registered",
                message="Email already registered",
            ) from exc
        except DuplicateKeyStoreError as exc:
            raise StoreAppError(
                code="user_create_failed",
                message="Failed to create user",
                details={"field": (exc.details or {}).get("field", "unknown")},
            ) from exc
        except StoreAppError as exc:
            raise StoreAppError(
                code="user_create_failed",
                message="Failed to create user",
                details=exc.details,
            ) from exc

        logger.info(
            "registration.succeeded",
            extra={
                "email_hash": email_hash,
                "referred": marketed_by is not None,
            },
        )
        return RegistrationResult(marketing_code=marketing_code, marketed_by=marketed_by)
