"""Authentication and authorization failure taxonomy."""

from __future__ import annotations

from crm_backend.api.errors import ApiErrorCode


class AuthError(Exception):
    """Base auth failure carrying a stable code and HTTP status."""

    code: ApiErrorCode = ApiErrorCode.AUTH_ERROR
    status_code: int = 401
    default_message: str = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict[str, str]:
        """Return the JSON error envelope for this failure."""
        return {"code": str(self.code), "error": self.message}


class NoToken(AuthError):
    code = ApiErrorCode.NO_TOKEN
    default_message = "Access token required"


class InvalidToken(AuthError):
    code = ApiErrorCode.INVALID_TOKEN
    default_message = "Invalid token"


class TokenExpired(AuthError):
    code = ApiErrorCode.TOKEN_EXPIRED
    default_message = "Token expired"


class TokenRevoked(AuthError):
    code = ApiErrorCode.TOKEN_REVOKED
    default_message = "Token revoked"


class UserNotFound(AuthError):
    code = ApiErrorCode.USER_NOT_FOUND
    default_message = "User not found"


class AccessDenied(AuthError):
    code = ApiErrorCode.ACCESS_DENIED
    status_code = 403
    default_message = "Access denied"
