"""Public API response contracts."""

from crm_backend.api.contracts.models import (
    ApiErrorResponse,
    AuthSessionResponse,
    BulkImportResponse,
    CamelModel,
    DeletedCountResponse,
    HealthResponse,
    LogoutAllResponse,
    MessageResponse,
    PaginationResponse,
    RegisterResponse,
    UserProfileResponse,
    UserSummaryResponse,
    VerifyResponse,
)

__all__ = [
    "ApiErrorResponse",
    "AuthSessionResponse",
    "BulkImportResponse",
    "CamelModel",
    "DeletedCountResponse",
    "HealthResponse",
    "LogoutAllResponse",
    "MessageResponse",
    "PaginationResponse",
    "RegisterResponse",
    "UserProfileResponse",
    "UserSummaryResponse",
    "VerifyResponse",
]
