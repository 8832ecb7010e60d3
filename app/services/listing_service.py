"""Listing workflow: paginated, newest-first view of registered users."""

from __future__ import annotations

import logging
import math
import re

from app.adapters.store.base import AbstractUserStore
from app.schemas.users import Pagination, UserListData, UserResponse

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
# Largest skip a MongoDB query accepts (BSON int64).
MAX_SKIP = 2**63 - 1

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


def _parse_int(raw: str | int | None) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, int):
        return raw
    text = raw.strip()
    if not _INT_PATTERN.fullmatch(text):
        return None
    try:
        return int(text)
    except ValueError:
        # beyond sys.get_int_max_str_digits()
        return None


def normalize_pagination(
    page: str | int | None,
    limit: str | int | None,
) -> tuple[int, int]:
    """Coerce raw query parameters into a usable (page, limit) pair.

    Invalid values never raise: a missing, unparsable or < 1 page becomes 1;
    a missing, unparsable or out-of-range limit (outside 1..100) becomes 10.
    Only plain ASCII integers parse. A page whose offset would not fit in a
    64-bit skip also becomes 1.

    Examples:
        >>> normalize_pagination(None, None)
        (1, 10)
        >>> normalize_pagination("3", "25")
        (3, 25)
        >>> normalize_pagination("-2", "500")
        (1, 10)
        >>> normalize_pagination("abc", "")
        (1, 10)
        >>> normalize_pagination("1_0", "\uff15")
        (1, 10)
    """
    parsed_page = _parse_int(page)
    parsed_limit = _parse_int(limit)

    if parsed_page is None or parsed_page < 1:
        parsed_page = DEFAULT_PAGE
    if parsed_limit is None or not 1 <= parsed_limit <= MAX_LIMIT:
        parsed_limit = DEFAULT_LIMIT
    if (parsed_page - 1) * parsed_limit > MAX_SKIP:
        parsed_page = DEFAULT_PAGE

    return parsed_page, parsed_limit


def total_pages(total_records: int, limit: int) -> int:
    return math.ceil(total_records / limit)


class ListingService:
    """Service assembling user pages from an AbstractUserStore."""

    def __init__(self, store: AbstractUserStore) -> None:
        self.store = store

    async def list_users(self, page: int, limit: int) -> UserListData:
        """Return one page of public user projections plus pagination metadata.

        Args:
            page: Normalized 1-based page number.
            limit: Normalized page size.

        Raises:
            StoreAppError: If the store fails.
        """
        records, total = await self.store.list_page(page, limit)

        data = UserListData(
            users=[UserResponse.from_record(record) for record in records],
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages(total, limit),
                total_records=total,
                limit=limit,
            ),
        )

        logger.info(
            "listing.served",
            extra={
                "page": page,
                "limit": limit,
                "returned": len(records),
                "total_records": total,
            },
        )
        return data
