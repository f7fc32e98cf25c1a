"""SQLite migrations for runtime state tables."""

from crm_backend.core.migrations.runner import apply_migrations, applied_migrations

__all__ = ["apply_migrations", "applied_migrations"]
