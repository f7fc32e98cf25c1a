"""Authentication API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from crm_backend.api.contracts import (
    ApiErrorResponse,
    AuthSessionResponse,
    LogoutAllResponse,
    MessageResponse,
    RegisterResponse,
    UserSummaryResponse,
    VerifyResponse,
)
from crm_backend.api.errors import ApiError
from crm_backend.auth.middleware import get_identity
from crm_backend.auth.models import (
    IdentityContext,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
)
from crm_backend.auth.rate_limiter import AuthRateLimiter
from crm_backend.auth.service import AuthService

IDENTITY = Depends(get_identity)


def _client_ip(request: Request) -> str:
    return (request.client.host if request.client else "") or "unknown"


def create_auth_router(
    service: AuthService, rate_limiter: AuthRateLimiter
) -> APIRouter:
    """Build authentication router with register/login/verify/refresh/logout."""
    router = APIRouter(prefix="/auth", tags=["auth"])

    @router.post(
        "/register",
        response_model=RegisterResponse,
        status_code=201,
        responses={
            400: {"model": ApiErrorResponse},
            409: {"model": ApiErrorResponse},
            429: {"model": ApiErrorResponse},
        },
    )
    def register(req: RegisterRequest, request: Request) -> RegisterResponse:
        """Create an account."""
        client_ip = _client_ip(request)
        rate_limiter.assert_allowed(scope="register", principal="*", client_ip=client_ip)
        try:
            user = service.register(req.email, req.password, req.display_name)
        except ApiError:
            rate_limiter.record_failure(
                scope="register", principal="*", client_ip=client_ip
            )
            raise
        return RegisterResponse(
            message="User created successfully",
            user=UserSummaryResponse(
                id=user.id, email=user.email, display_name=user.display_name
            ),
        )

    @router.post(
        "/login",
        response_model=AuthSessionResponse,
        responses={401: {"model": ApiErrorResponse}, 429: {"model": ApiErrorResponse}},
    )
    def login(req: LoginRequest, request: Request) -> AuthSessionResponse:
        """Authenticate user and return token pair."""
        client_ip = _client_ip(request)
        principal = req.email.strip().lower()
        rate_limiter.assert_allowed(scope="login", principal=principal, client_ip=client_ip)
        try:
            pair, user = service.login(req.email, req.password)
        except ApiError:
            rate_limiter.record_failure(
                scope="login", principal=principal, client_ip=client_ip
            )
            raise
        rate_limiter.record_success(scope="login", principal=principal, client_ip=client_ip)
        return AuthSessionResponse(
            **pair.model_dump(),
            user=UserSummaryResponse(
                id=user.id, email=user.email, display_name=user.display_name
            ),
        )

    @router.get(
        "/verify",
        response_model=VerifyResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def verify(identity: IdentityContext = IDENTITY) -> VerifyResponse:
        """Confirm the presented access token is valid."""
        return VerifyResponse(
            valid=True,
            user=UserSummaryResponse(id=identity.id, email=identity.email),
        )

    @router.post(
        "/refresh",
        response_model=AuthSessionResponse,
        responses={401: {"model": ApiErrorResponse}, 429: {"model": ApiErrorResponse}},
    )
    def refresh(req: RefreshRequest, request: Request) -> AuthSessionResponse:
        """Rotate refresh token and issue new session tokens."""
        client_ip = _client_ip(request)
        rate_limiter.assert_allowed(scope="refresh", principal="*", client_ip=client_ip)
        try:
            pair = service.refresh(req.refresh_token)
        except ApiError:
            rate_limiter.record_failure(scope="refresh", principal="*", client_ip=client_ip)
            raise
        return AuthSessionResponse(**pair.model_dump())

    @router.post("/logout", response_model=MessageResponse)
    def logout(req: LogoutRequest | None = None) -> MessageResponse:
        """Invalidate supplied refresh token."""
        service.logout(req.refresh_token if req else None)
        return MessageResponse(message="Logged out successfully")

    @router.post(
        "/logout-all",
        response_model=LogoutAllResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def logout_all(identity: IdentityContext = IDENTITY) -> LogoutAllResponse:
        """Revoke every refresh token of the caller."""
        revoked = service.logout_all(identity.id)
        return LogoutAllResponse(message="Logged out from all sessions", revoked=revoked)

    return router
