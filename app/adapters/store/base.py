from abc import ABC, abstractmethod

from app.schemas.users import UserRecord


class AbstractUserStore(ABC):
	"""Interface for the collection of registered users.

	Implementations raise StoreAppError when the backend fails, and
	DuplicateEmailError / DuplicateKeyStoreError when an insert violates a
	unique constraint on ``email`` / ``marketingCode``.
	"""

	@abstractmethod
	async def email_exists(self, email: str) -> bool:
		"""Return True if a user with this (normalized) email is stored."""
		...

	@abstractmethod
	async def referral_code_exists(self, code: str) -> bool:
		"""Return True if any user already holds this referral code."""
		...

	@abstractmethod
	async def find_by_referral_code(self, code: str) -> UserRecord | None:
		"""Look up the user holding ``code``.

		Returns:
			UserRecord | None: The user, or None when no user holds the code.
		"""
		...

	@abstractmethod
	async def insert(self, user: UserRecord) -> str:
		"""Append one user record.

		Returns:
			str: The inserted user's referral code.
		"""
		...

	@abstractmethod
	async def list_page(self, page: int, limit: int) -> tuple[list[UserRecord], int]:
		"""Return one page of users, newest first, and the total user count.

		Args:
			page: 1-based page number.
			limit: Page size.

		Returns:
			tuple[list[UserRecord], int]: (users on the page, total users).
		"""
		...

	async def ensure_indexes(self) -> None:
		"""Create backend constraints (unique indexes). No-op by default."""

	async def close(self) -> None:
		"""Release backend resources. No-op by default."""
