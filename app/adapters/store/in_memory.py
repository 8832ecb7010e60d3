"""In-memory user store for tests and local development.

Enforces the same unique constraints as the MongoDB indexes (email and
referral code) atomically under a single asyncio lock. Data lives for the
lifetime of the process only.
"""

from __future__ import annotations

import asyncio
import logging

from app.adapters.store.base import AbstractUserStore
from app.core.errors import DuplicateEmailError, DuplicateKeyStoreError
from app.schemas.users import UserRecord

logger = logging.getLogger(__name__)


class InMemoryUserStore(AbstractUserStore):
    """List-backed store keeping users in insertion order."""

    def __init__(self) -> None:
        self._users: list[UserRecord] = []
        self._by_email: dict[str, UserRecord] = {}
        self._by_code: dict[str, UserRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._users)

    async def email_exists(self, email: str) -> bool:
        async with self._lock:
            return email in self._by_email

    async def referral_code_exists(self, code: str) -> bool:
        async with self._lock:
            return code in self._by_code

    async def find_by_referral_code(self, code: str) -> UserRecord | None:
        async with self._lock:
            return self._by_code.get(code)

    async def insert(self, user: UserRecord) -> str:
        async with self._lock:
            if user.email in self._by_email:
                raise DuplicateEmailError(
                    code="duplicate_email",
                    message="Email already registered",
                    details={"field": "email"},
                )
            if user.marketing_code in self._by_code:
                raise DuplicateKeyStoreError(
                    code="duplicate_marketing_code",
                    message="Referral code already assigned",
                    details={"field": "marketingCode"},
                )

            self._users.append(user)
            self._by_email[user.email] = user
            self._by_code[user.marketing_code] = user

        logger.debug("store.memory.inserted", extra={"size": len(self._users)})
        return user.marketing_code

    async def list_page(self, page: int, limit: int) -> tuple[list[UserRecord], int]:
        offset = (page - 1) * limit
        async with self._lock:
            total = len(self._users)
            # Stable sort on reversed insertion order: newest first, ties by
            # later insertion first.
            newest_first = sorted(
                reversed(self._users),
                key=lambda user: user.created_at,
                reverse=True,
            )
            return newest_first[offset:offset + limit], total
