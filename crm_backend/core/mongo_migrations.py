"""Versioned MongoDB index migrations for CRM collections."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from crm_backend.core.logging import get_correlation_id

LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[Any], None]


def _migration_0001_auth_indexes(db: Any) -> None:
    db["users"].create_index("id", unique=True)
    db["users"].create_index("email", unique=True)
    db["refresh_tokens"].create_index("token_id", unique=True)
    db["refresh_tokens"].create_index("user_id")
    db["refresh_tokens"].create_index("expires_at")


def _migration_0002_crm_indexes(db: Any) -> None:
    db["contacts"].create_index("id", unique=True)
    db["contacts"].create_index([("user_id", 1), ("created_at", -1)])
    db["contacts"].create_index([("user_id", 1), ("email", 1)])
    for name in ("tasks", "notes", "activities"):
        db[name].create_index("id", unique=True)
        db[name].create_index("contact_id")
    db["tasks"].create_index([("user_id", 1), ("created_at", -1)])


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("0001_auth_indexes", _migration_0001_auth_indexes),
    ("0002_crm_indexes", _migration_0002_crm_indexes),
]


def apply_mongo_migrations(db: Any) -> list[str]:
    """Apply pending migrations to ``db``; return the ids applied."""
    migration_collection = db["schema_migrations"]
    migration_collection.create_index("migration_id", unique=True)

    applied: list[str] = []
    for migration_id, migration_fn in MIGRATIONS:
        if migration_collection.find_one({"migration_id": migration_id}):
            continue
        migration_fn(db)
        migration_collection.insert_one(
            {
                "migration_id": migration_id,
                "applied_at": datetime.now(timezone.utc),
                "correlation_id": get_correlation_id(),
            }
        )
        applied.append(migration_id)
    if applied:
        LOGGER.info("Applied MongoDB migrations: %s", ", ".join(applied))
    return applied
