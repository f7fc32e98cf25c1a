"""Pydantic models for authentication domain."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from crm_backend.api.contracts import CamelModel


class UserRecord(BaseModel):
    """Persisted user record."""

    id: str
    email: str
    password_hash: str
    display_name: str | None = None
    created_at: str
    updated_at: str


class RegisterRequest(CamelModel):
    """Registration request payload."""

    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=1)
    display_name: str | None = Field(default=None, max_length=120)


class LoginRequest(CamelModel):
    """Login request payload."""

    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class RefreshRequest(CamelModel):
    """Refresh request payload."""

    refresh_token: str = Field(min_length=1)


class LogoutRequest(CamelModel):
    """Logout request payload."""

    refresh_token: str | None = None


class TokenPair(BaseModel):
    """Freshly issued access and refresh tokens."""

    access_token: str
    refresh_token: str
    access_token_expiry: int
    token_type: str = "bearer"


class AccessClaims(BaseModel):
    """Verified access token claims."""

    user_id: str
    email: str
    expires_at: int


class RefreshClaims(BaseModel):
    """Verified refresh token claims."""

    user_id: str
    token_id: str


class IdentityContext(BaseModel):
    """Authenticated caller attached to the current request."""

    id: str
    email: str


class RefreshTokenRecord(BaseModel):
    """Refresh token registry record."""

    token_id: str
    user_id: str
    issued_at: int
    expires_at: int
    revoked: bool = False
    revoked_at: int | None = None
    revoked_reason: str = ""


class TokenState(StrEnum):
    """Refresh token lifecycle states."""

    ACTIVE = "ACTIVE"
    ROTATED = "ROTATED"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"
    PURGED = "PURGED"
