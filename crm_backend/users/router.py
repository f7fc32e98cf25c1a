"""User account API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import Field

from crm_backend.api.contracts import (
    ApiErrorResponse,
    CamelModel,
    UserProfileResponse,
    UserSummaryResponse,
)
from crm_backend.auth.middleware import get_identity
from crm_backend.auth.models import IdentityContext, UserRecord
from crm_backend.users.service import UserService

IDENTITY = Depends(get_identity)


class EmailChangeRequest(CamelModel):
    email: str = Field(min_length=3, max_length=254)
    current_password: str = Field(min_length=1)


class PasswordChangeRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)
    confirm_password: str = Field(min_length=1)


class DisplayNameRequest(CamelModel):
    display_name: str | None = Field(default=None, max_length=120)


class UserUpdateResponse(CamelModel):
    message: str
    user: UserSummaryResponse


def _summary(user: UserRecord) -> UserSummaryResponse:
    return UserSummaryResponse(id=user.id, email=user.email, display_name=user.display_name)


def create_users_router(service: UserService) -> APIRouter:
    """Build router for self-service account endpoints."""
    router = APIRouter(prefix="/users", tags=["users"])
    errors = {400: {"model": ApiErrorResponse}, 401: {"model": ApiErrorResponse}}

    @router.get("/profile", response_model=UserProfileResponse)
    def get_profile(identity: IdentityContext = IDENTITY) -> UserProfileResponse:
        user = service.get_profile(identity)
        return UserProfileResponse(**user.model_dump(exclude={"password_hash"}))

    @router.put(
        "/email",
        response_model=UserUpdateResponse,
        responses={**errors, 409: {"model": ApiErrorResponse}},
    )
    def change_email(
        req: EmailChangeRequest, identity: IdentityContext = IDENTITY
    ) -> UserUpdateResponse:
        user = service.change_email(identity, req.email, req.current_password)
        return UserUpdateResponse(message="Email updated successfully", user=_summary(user))

    @router.put("/password", response_model=UserUpdateResponse, responses=errors)
    def change_password(
        req: PasswordChangeRequest, identity: IdentityContext = IDENTITY
    ) -> UserUpdateResponse:
        """Change password; every refresh token of the user is revoked."""
        service.change_password(
            identity, req.current_password, req.new_password, req.confirm_password
        )
        return UserUpdateResponse(
            message="Password updated successfully",
            user=_summary(service.get_profile(identity)),
        )

    @router.put("/display-name", response_model=UserUpdateResponse, responses=errors)
    def change_display_name(
        req: DisplayNameRequest, identity: IdentityContext = IDENTITY
    ) -> UserUpdateResponse:
        user = service.change_display_name(identity, req.display_name)
        return UserUpdateResponse(
            message="Display name updated successfully", user=_summary(user)
        )

    return router
