from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from app.adapters.store.base import AbstractUserStore
from app.core.config import settings
from app.schemas.users import (
    ErrorResponse,
    RegisterRequest,
    RegisterResponse,
    RegistrationData,
    UserListResponse,
)
from app.services.listing_service import ListingService, normalize_pagination
from app.services.registration_service import RegistrationService

router = APIRouter(prefix="/api", tags=["Users"])


def get_user_store(request: Request) -> AbstractUserStore:
    return request.app.state.user_store


def get_registration_service(
    store: Annotated[AbstractUserStore, Depends(get_user_store)],
) -> RegistrationService:
    return RegistrationService(
        store,
        max_code_attempts=settings.app.referral_code_max_attempts,
    )


def get_listing_service(
    store: Annotated[AbstractUserStore, Depends(get_user_store)],
) -> ListingService:
    return ListingService(store)


@router.post(
    "/register",
    response_model=RegisterResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Malformed body or terms not accepted"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
        500: {"model": ErrorResponse, "description": "Store failure"},
    },
)
async def register_user(
    payload: RegisterRequest,
    service: Annotated[RegistrationService, Depends(get_registration_service)],
) -> RegisterResponse:
    """Register a new user and return their referral code.

    A valid ``marketingCode`` from an existing user records that user as the
    referrer; unknown codes are ignored.

    Raises:
        ValidationAppError: 400 when terms/privacy policy are not accepted.
        ConflictAppError: 409 when the email is already registered.
        StoreAppError: 500 on store failure.
    """
    result = await service.register(payload)
    return RegisterResponse(data=RegistrationData(marketing_code=result.marketing_code))


@router.get(
    "/whosyourdaddy",
    response_model=UserListResponse,
    responses={500: {"model": ErrorResponse, "description": "Store failure"}},
)
async def list_users(
    service: Annotated[ListingService, Depends(get_listing_service)],
    page: Annotated[str | None, Query(description="1-based page number (default 1)")] = None,
    limit: Annotated[str | None, Query(description="Page size 1-100 (default 10)")] = None,
) -> UserListResponse:
    """List registered users, newest first.

    Invalid ``page``/``limit`` values fall back to their defaults instead of
    failing the request.
    """
    page_number, page_size = normalize_pagination(page, limit)
    data = await service.list_users(page_number, page_size)
    return UserListResponse(data=data)
