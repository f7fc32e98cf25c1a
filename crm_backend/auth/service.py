"""Authentication service for registration, login, refresh and logout."""

from __future__ import annotations

import logging
import re

from crm_backend.api.errors import ApiError, ApiErrorCode
from crm_backend.auth.errors import AuthError
from crm_backend.auth.models import TokenPair, UserRecord
from crm_backend.auth.registry import RefreshTokenRegistry
from crm_backend.auth.repository import UserRepositoryProtocol, normalize_email
from crm_backend.auth.tokens import TokenIssuer
from crm_backend.core.config import AuthConfig
from crm_backend.core.security import hash_password, verify_password
from crm_backend.core.store import DuplicateRecordError

LOGGER = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


def validate_email(email: str) -> str:
    """Return the normalized email or raise a 400 validation error."""
    normalized = normalize_email(email)
    if not EMAIL_RE.match(normalized):
        raise ApiError(
            status_code=400,
            error_code=ApiErrorCode.VALIDATION_ERROR,
            message="Invalid email address",
        )
    return normalized


def validate_password_strength(password: str) -> None:
    """Require length, an uppercase, a lowercase letter and a digit."""
    if (
        len(password) < MIN_PASSWORD_LENGTH
        or not re.search(r"[A-Z]", password)
        or not re.search(r"[a-z]", password)
        or not re.search(r"\d", password)
    ):
        raise ApiError(
            status_code=400,
            error_code=ApiErrorCode.INVALID_PASSWORD,
            message=(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters and "
                "contain uppercase, lowercase and numeric characters"
            ),
        )


class AuthService:
    """Authentication domain service."""

    def __init__(
        self,
        users: UserRepositoryProtocol,
        issuer: TokenIssuer,
        registry: RefreshTokenRegistry,
        config: AuthConfig,
    ) -> None:
        """Initialize service dependencies."""
        self._users = users
        self._issuer = issuer
        self._registry = registry
        self._config = config

    def hash_password(self, password: str) -> str:
        return hash_password(password, iterations=self._config.password_iterations)

    def register(
        self, email: str, password: str, display_name: str | None = None
    ) -> UserRecord:
        """Create a new user with a hashed password."""
        normalized = validate_email(email)
        validate_password_strength(password)
        if self._users.get_by_email(normalized) is not None:
            raise ApiError(
                status_code=409,
                error_code=ApiErrorCode.USER_EXISTS,
                message="User already exists",
            )
        try:
            return self._users.create(
                email=normalized,
                password_hash=self.hash_password(password),
                display_name=(display_name or "").strip() or None,
            )
        except DuplicateRecordError as exc:
            raise ApiError(
                status_code=409,
                error_code=ApiErrorCode.USER_EXISTS,
                message="User already exists",
            ) from exc

    def login(self, email: str, password: str) -> tuple[TokenPair, UserRecord]:
        """Authenticate credentials and issue access/refresh token pair."""
        user = self._users.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            LOGGER.warning("Login failed")
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.INVALID_CREDENTIALS,
                message="Invalid credentials",
            )
        LOGGER.info("Login succeeded", extra={"user_id": user.id})
        return self._issuer.issue_token_pair(user.id, user.email), user

    def refresh(self, refresh_token: str) -> TokenPair:
        """Consume a refresh token and rotate the token pair.

        Every verification failure is reported to the client as the same
        ``INVALID_REFRESH_TOKEN`` error; the real reason is logged.
        """
        try:
            claims = self._registry.consume(refresh_token)
        except AuthError as exc:
            LOGGER.warning(
                "Refresh rejected: %s",
                exc.message,
                extra={"error_code": str(exc.code)},
            )
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.INVALID_REFRESH_TOKEN,
                message="Invalid or expired refresh token",
            ) from exc

        user = self._users.get_by_id(claims.user_id)
        if user is None:
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.USER_NOT_FOUND,
                message="User not found",
            )
        return self._issuer.issue_token_pair(user.id, user.email)

    def logout(self, refresh_token: str | None) -> None:
        """Revoke provided refresh token when it is still usable.

        Never fails: bad tokens are ignored and store errors are logged.
        """
        if not refresh_token:
            return
        try:
            claims = self._registry.verify(refresh_token)
            self._registry.revoke(claims.token_id, reason="logout")
        except AuthError as exc:
            LOGGER.info(
                "Logout with unusable refresh token",
                extra={"error_code": str(exc.code)},
            )
        except Exception:
            LOGGER.exception("Refresh token revocation failed during logout")

    def logout_all(self, user_id: str) -> int:
        """Revoke every refresh token of ``user_id``."""
        return self._registry.revoke_all(user_id)
