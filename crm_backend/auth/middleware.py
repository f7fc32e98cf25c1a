"""HTTP middleware that enforces bearer auth on protected routes."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse

from crm_backend.api.contracts import ApiErrorResponse
from crm_backend.api.errors import ApiErrorCode
from crm_backend.auth.errors import AuthError, NoToken, UserNotFound
from crm_backend.auth.models import IdentityContext
from crm_backend.auth.repository import UserRepositoryProtocol
from crm_backend.auth.tokens import TokenIssuer

LOGGER = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset(
    {
        "/health",
        "/auth/register",
        "/auth/login",
        "/auth/refresh",
        "/auth/logout",
        "/docs",
        "/redoc",
        "/openapi.json",
    }
)


def extract_bearer_token(authorization: str | None) -> str:
    """Extract bearer token from authorization header value."""
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


class AccessTokenAuthenticator:
    """Resolve an Authorization header into an identity.

    The user is re-read from the store on every call so deleted accounts lose
    access immediately, at the cost of one lookup per request.
    """

    def __init__(self, issuer: TokenIssuer, users: UserRepositoryProtocol) -> None:
        self._issuer = issuer
        self._users = users

    def authenticate(self, authorization: str | None) -> IdentityContext:
        token = extract_bearer_token(authorization)
        if not token:
            raise NoToken()
        claims = self._issuer.verify_access_token(token)
        user = self._users.get_by_id(claims.user_id)
        if user is None:
            raise UserNotFound()
        return IdentityContext(id=user.id, email=user.email)


def create_auth_middleware(
    authenticator: AccessTokenAuthenticator,
    *,
    public_paths: frozenset[str] = PUBLIC_PATHS,
) -> Callable:
    """Create middleware function that validates access tokens."""

    async def auth_middleware(request: Request, call_next: Callable):
        """Validate auth for protected paths and attach identity to request state."""
        if request.method == "OPTIONS" or request.url.path in public_paths:
            return await call_next(request)

        try:
            identity = authenticator.authenticate(request.headers.get("authorization"))
        except AuthError as exc:
            LOGGER.info(
                "Request rejected by auth middleware",
                extra={"path": request.url.path, "error_code": str(exc.code)},
            )
            return JSONResponse(status_code=exc.status_code, content=exc.to_payload())
        except Exception:
            LOGGER.exception(
                "Authentication lookup failed", extra={"path": request.url.path}
            )
            return JSONResponse(
                status_code=500,
                content=ApiErrorResponse(
                    code=ApiErrorCode.AUTH_ERROR,
                    error="Authentication error",
                ).model_dump(),
            )

        request.state.identity = identity
        return await call_next(request)

    return auth_middleware


def get_identity(request: Request) -> IdentityContext:
    """FastAPI dependency returning the identity set by the auth middleware."""
    identity = getattr(request.state, "identity", None)
    if not isinstance(identity, IdentityContext):
        raise NoToken()
    return identity
