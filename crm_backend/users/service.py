"""Account self-service: profile, email, password and display name."""

from __future__ import annotations

import logging

from crm_backend.api.errors import ApiError, ApiErrorCode
from crm_backend.auth.errors import UserNotFound
from crm_backend.auth.models import IdentityContext, UserRecord
from crm_backend.auth.registry import RefreshTokenRegistry
from crm_backend.auth.repository import UserRepositoryProtocol
from crm_backend.auth.service import validate_email, validate_password_strength
from crm_backend.core.config import AuthConfig
from crm_backend.core.security import hash_password, verify_password
from crm_backend.core.store import DuplicateRecordError

LOGGER = logging.getLogger(__name__)


class UserService:
    """Changes a signed-in user may make to their own account."""

    def __init__(
        self,
        users: UserRepositoryProtocol,
        registry: RefreshTokenRegistry,
        config: AuthConfig,
    ) -> None:
        self._users = users
        self._registry = registry
        self._config = config

    def get_profile(self, identity: IdentityContext) -> UserRecord:
        user = self._users.get_by_id(identity.id)
        if user is None:
            raise UserNotFound()
        return user

    def _check_current_password(self, user: UserRecord, current_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise ApiError(
                status_code=400,
                error_code=ApiErrorCode.INVALID_PASSWORD,
                message="Current password is incorrect",
            )

    def change_email(
        self, identity: IdentityContext, email: str, current_password: str
    ) -> UserRecord:
        user = self.get_profile(identity)
        self._check_current_password(user, current_password)
        normalized = validate_email(email)
        if normalized == user.email:
            raise ApiError(
                status_code=400,
                error_code=ApiErrorCode.SAME_EMAIL,
                message="New email must be different from current email",
            )
        existing = self._users.get_by_email(normalized)
        if existing is not None and existing.id != user.id:
            raise ApiError(
                status_code=409,
                error_code=ApiErrorCode.EMAIL_TAKEN,
                message="Email address is already in use",
            )
        try:
            updated = self._users.update(user.id, {"email": normalized})
        except DuplicateRecordError as exc:
            raise ApiError(
                status_code=409,
                error_code=ApiErrorCode.EMAIL_TAKEN,
                message="Email address is already in use",
            ) from exc
        if updated is None:
            raise UserNotFound()
        LOGGER.info("User email changed", extra={"user_id": user.id})
        return updated

    def change_password(
        self,
        identity: IdentityContext,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> int:
        """Replace the password and revoke all refresh tokens; returns how many."""
        if new_password != confirm_password:
            raise ApiError(
                status_code=400,
                error_code=ApiErrorCode.PASSWORD_MISMATCH,
                message="New password and confirmation do not match",
            )
        user = self.get_profile(identity)
        self._check_current_password(user, current_password)
        validate_password_strength(new_password)
        self._users.update(
            user.id,
            {
                "password_hash": hash_password(
                    new_password, iterations=self._config.password_iterations
                )
            },
        )
        revoked = self._registry.revoke_all(user.id, reason="password_change")
        LOGGER.info("User password changed", extra={"user_id": user.id, "removed": revoked})
        return revoked

    def change_display_name(
        self, identity: IdentityContext, display_name: str | None
    ) -> UserRecord:
        self.get_profile(identity)
        updated = self._users.update(
            identity.id, {"display_name": (display_name or "").strip() or None}
        )
        if updated is None:
            raise UserNotFound()
        return updated
