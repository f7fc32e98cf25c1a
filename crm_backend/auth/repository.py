"""Repository for persisted user credentials."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Protocol

from crm_backend.auth.models import UserRecord
from crm_backend.core.store import Collection, DuplicateRecordError

LOGGER = logging.getLogger(__name__)

USER_ID_LENGTH = 10
USER_ID_MAX_ATTEMPTS = 10


class UserIdExhaustedError(RuntimeError):
    """Raised when no free user id could be generated."""


class UserRepositoryProtocol(Protocol):
    """Protocol describing user repository methods used by services."""

    def get_by_id(self, user_id: str) -> UserRecord | None:
        """Return user by id."""

    def get_by_email(self, email: str) -> UserRecord | None:
        """Return user by normalized email."""

    def create(
        self, *, email: str, password_hash: str, display_name: str | None
    ) -> UserRecord:
        """Insert a new user and return it."""

    def update(self, user_id: str, values: dict[str, Any]) -> UserRecord | None:
        """Apply changes and return the updated user."""


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_user_id() -> str:
    """Return a random fixed-length numeric user id without leading zero."""
    first = str(secrets.randbelow(9) + 1)
    rest = "".join(str(secrets.randbelow(10)) for _ in range(USER_ID_LENGTH - 1))
    return first + rest


class UserRepository:
    """User repository over a record collection with unique id and email."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def get_by_id(self, user_id: str) -> UserRecord | None:
        doc = self._collection.find_one({"id": user_id})
        return UserRecord.model_validate(doc) if doc else None

    def get_by_email(self, email: str) -> UserRecord | None:
        doc = self._collection.find_one({"email": normalize_email(email)})
        return UserRecord.model_validate(doc) if doc else None

    def create(
        self, *, email: str, password_hash: str, display_name: str | None
    ) -> UserRecord:
        """Insert a new user under a fresh random id.

        Raises ``DuplicateRecordError`` when the email is already taken. An id
        collision, including one lost to a concurrent registration, draws a
        new id.
        """
        normalized = normalize_email(email)
        if self.get_by_email(normalized) is not None:
            raise DuplicateRecordError(f"User already exists: {normalized}", field="email")
        now = _now_iso()
        for _ in range(USER_ID_MAX_ATTEMPTS):
            user = UserRecord(
                id=generate_user_id(),
                email=normalized,
                password_hash=password_hash,
                display_name=display_name,
                created_at=now,
                updated_at=now,
            )
            try:
                self._collection.insert_one(user.model_dump())
            except DuplicateRecordError as exc:
                if exc.field != "id":
                    raise
                LOGGER.warning("Generated user id already taken, retrying")
                continue
            LOGGER.info("User created", extra={"user_id": user.id})
            return user
        raise UserIdExhaustedError(
            f"Could not generate a unique user id after {USER_ID_MAX_ATTEMPTS} attempts"
        )

    def update(self, user_id: str, values: dict[str, Any]) -> UserRecord | None:
        changes = dict(values)
        if "email" in changes:
            changes["email"] = normalize_email(str(changes["email"]))
        changes["updated_at"] = _now_iso()
        doc = self._collection.update_one({"id": user_id}, changes)
        return UserRecord.model_validate(doc) if doc else None
