"""MongoDB user store adapter.

Uses the official PyMongo async API. One document per user in a single
collection; unique indexes on ``email`` and ``marketingCode`` close the
check-then-insert race left by the pre-write existence checks.
"""

from __future__ import annotations

import logging
from typing import Any

from pymongo import ASCENDING, DESCENDING, AsyncMongoClient
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.adapters.store.base import AbstractUserStore
from app.core.config import MongoSettings
from app.core.errors import DuplicateEmailError, DuplicateKeyStoreError, StoreAppError
from app.schemas.users import UserRecord

logger = logging.getLogger(__name__)

EMAIL_INDEX = "email_unique"
MARKETING_CODE_INDEX = "marketing_code_unique"
CREATED_AT_INDEX = "created_at_desc"


def _store_error(operation: str, exc: PyMongoError) -> StoreAppError:
    logger.error(
        "store.mongo.failed",
        extra={
            "operation": operation,
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
        },
    )
    return StoreAppError(
        code="store_error",
        message="Internal server error",
        details={"operation": operation},
    )


def _duplicate_field(exc: DuplicateKeyError) -> str | None:
    """Name the document key that violated a unique index, if known."""
    details: dict[str, Any] = exc.details or {}
    key_value = details.get("keyValue") or {}
    if key_value:
        return next(iter(key_value))

    message = str(exc)
    if EMAIL_INDEX in message:
        return "email"
    if MARKETING_CODE_INDEX in message:
        return "marketingCode"
    return None


class MongoUserStore(AbstractUserStore):
    """User store backed by a MongoDB collection."""

    def __init__(
        self,
        collection: AsyncCollection,
        client: AsyncMongoClient | None = None,
    ) -> None:
        """Initialize with an already-selected collection.

        Args:
            collection: Collection holding user documents.
            client: Owning client, closed by :meth:`close` when given.
        """
        self.collection = collection
        self.client = client

    @classmethod
    def from_settings(cls, mongo_settings: MongoSettings) -> "MongoUserStore":
        """Create a client and bind to the configured database/collection.

        The client connects lazily on the first operation.
        """
        client: AsyncMongoClient = AsyncMongoClient(
            mongo_settings.resolved_uri(),
            tz_aware=True,
            timeoutMS=mongo_settings.timeout_ms,
            appname="referral-signup-api",
        )
        collection = client[mongo_settings.database][mongo_settings.collection]

        logger.info(
            "store.mongo.configured",
            extra={
                "uri": mongo_settings.safe_uri(),
                "database": mongo_settings.database,
                "collection": mongo_settings.collection,
            },
        )
        return cls(collection, client=client)

    async def ensure_indexes(self) -> None:
        try:
            await self.collection.create_index(
                [("email", ASCENDING)], name=EMAIL_INDEX, unique=True
            )
            await self.collection.create_index(
                [("marketingCode", ASCENDING)], name=MARKETING_CODE_INDEX, unique=True
            )
            await self.collection.create_index(
                [("createdAt", DESCENDING)], name=CREATED_AT_INDEX
            )
        except PyMongoError as exc:
            raise _store_error("ensure_indexes", exc) from exc

        logger.info("store.mongo.indexes_ready")

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
            logger.info("store.mongo.closed")

    async def email_exists(self, email: str) -> bool:
        try:
            count = await self.collection.count_documents({"email": email}, limit=1)
        except PyMongoError as exc:
            raise _store_error("email_exists", exc) from exc
        return count > 0

    async def referral_code_exists(self, code: str) -> bool:
        try:
            count = await self.collection.count_documents({"marketingCode": code}, limit=1)
        except PyMongoError as exc:
            raise _store_error("referral_code_exists", exc) from exc
        return count > 0

    async def find_by_referral_code(self, code: str) -> UserRecord | None:
        try:
            document = await self.collection.find_one({"marketingCode": code})
        except PyMongoError as exc:
            raise _store_error("find_by_referral_code", exc) from exc

        if document is None:
            return None
        return UserRecord.from_document(document)

    async def insert(self, user: UserRecord) -> str:
        try:
            await self.collection.insert_one(user.to_document())
        except DuplicateKeyError as exc:
            field = _duplicate_field(exc)
            if field == "email":
                raise DuplicateEmailError(
                    code="duplicate_email",
                    message="Email already registered",
                    details={"field": "email"},
                ) from exc
            raise DuplicateKeyStoreError(
                code="duplicate_key",
                message="Internal server error",
                details={"field": field or "unknown"},
            ) from exc
        except PyMongoError as exc:
            raise _store_error("insert", exc) from exc

        return user.marketing_code

    async def list_page(self, page: int, limit: int) -> tuple[list[UserRecord], int]:
        skip = (page - 1) * limit

        try:
            total = await self.collection.count_documents({})
            cursor = (
                self.collection.find({})
                .sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
                .skip(skip)
                .limit(limit)
            )
            documents = await cursor.to_list(length=limit)
        except PyMongoError as exc:
            raise _store_error("list_page", exc) from exc

        return [UserRecord.from_document(doc) for doc in documents], total
