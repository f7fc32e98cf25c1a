"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    code: str = Field(description="Machine-readable error code")
    error: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]


class MessageResponse(BaseModel):
    """Plain acknowledgement payload."""

    message: str


class UserSummaryResponse(CamelModel):
    """Public user identity payload."""

    id: str
    email: str
    display_name: str | None = None


class RegisterResponse(CamelModel):
    """Registration response payload."""

    message: str
    user: UserSummaryResponse


class AuthSessionResponse(CamelModel):
    """Authentication session response payload."""

    access_token: str
    refresh_token: str
    access_token_expiry: int
    token_type: str = "bearer"
    user: UserSummaryResponse | None = None


class VerifyResponse(CamelModel):
    """Access token verification payload."""

    valid: bool
    user: UserSummaryResponse


class LogoutAllResponse(CamelModel):
    """Revoke-all response payload."""

    message: str
    revoked: int


class UserProfileResponse(CamelModel):
    """Current user profile payload."""

    id: str
    email: str
    display_name: str | None = None
    created_at: str
    updated_at: str


class PaginationResponse(CamelModel):
    """Page metadata for list endpoints."""

    page: int
    limit: int
    total: int
    total_pages: int


class DeletedCountResponse(CamelModel):
    """Bulk delete response payload."""

    message: str
    deleted: int


class BulkImportResponse(CamelModel):
    """Bulk contact import summary."""

    message: str
    imported: int
    skipped: int
