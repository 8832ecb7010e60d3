"""Pydantic schemas for user registration, listing and the stored record.

Wire names are camelCase (``firstName``, ``marketingCode`` ...); Python
attributes are snake_case and mapped through aliases.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictBool


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(_CamelModel):
    """Registration payload submitted by an anonymous visitor."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    first_name: str = Field(..., alias="firstName", min_length=2, max_length=50)
    last_name: str = Field(..., alias="lastName", min_length=2, max_length=50)
    phone_no: str = Field(..., alias="phoneNo", min_length=10, max_length=15)
    email: EmailStr = Field(..., description="Must not already be registered.")
    # JSON booleans only; "true", 1 and "on" are rejected rather than coerced.
    is_accept_tnc: StrictBool = Field(..., alias="isAcceptTnc")
    is_accept_privacy_policy: StrictBool = Field(..., alias="isAcceptPrivacyPolicy")
    marketing_code: str | None = Field(
        default=None,
        alias="marketingCode",
        description="Referral code of the user who referred this registrant.",
    )


class UserRecord(_CamelModel):
    """One stored user document. Immutable once inserted."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    phone_no: str = Field(..., alias="phoneNo")
    email: str
    is_accept_tnc: bool = Field(..., alias="isAcceptTnc")
    is_accept_privacy_policy: bool = Field(..., alias="isAcceptPrivacyPolicy")
    marketing_code: str = Field(..., alias="marketingCode")
    marketed_by: str | None = Field(default=None, alias="marketedBy")
    created_at: datetime = Field(..., alias="createdAt")

    def to_document(self) -> dict[str, Any]:
        """Serialize for the store; ``marketedBy`` is omitted when absent."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "UserRecord":
        return cls.model_validate(document)


class UserResponse(_CamelModel):
    """Public projection of a user; referral linkage is not exposed."""

    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    phone_no: str = Field(..., alias="phoneNo")
    email: str
    is_accept_tnc: bool = Field(..., alias="isAcceptTnc")
    is_accept_privacy_policy: bool = Field(..., alias="isAcceptPrivacyPolicy")
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserResponse":
        return cls(
            first_name=record.first_name,
            last_name=record.last_name,
            phone_no=record.phone_no,
            email=record.email,
            is_accept_tnc=record.is_accept_tnc,
            is_accept_privacy_policy=record.is_accept_privacy_policy,
            created_at=record.created_at,
        )


class Pagination(_CamelModel):
    current_page: int = Field(..., alias="currentPage", ge=1)
    total_pages: int = Field(..., alias="totalPages", ge=0)
    total_records: int = Field(..., alias="totalRecords", ge=0)
    limit: int = Field(..., ge=1, le=100)


class UserListData(_CamelModel):
    users: list[UserResponse] = Field(default_factory=list)
    pagination: Pagination


class UserListResponse(_CamelModel):
    status: Literal["success"] = "success"
    message: str = "Users retrieved successfully"
    data: UserListData


class RegistrationData(_CamelModel):
    marketing_code: str = Field(
        ...,
        alias="marketingCode",
        description="Referral code assigned to the new user; share it to refer others.",
    )


class RegisterResponse(_CamelModel):
    status: Literal["success"] = "success"
    message: str = "Registration successful"
    data: RegistrationData


class ErrorResponse(BaseModel):
    """Error envelope used by every non-2xx response."""

    status: Literal["error"] = "error"
    message: str
    code: str
    request_id: str | None = None
    details: dict[str, Any] | None = None
