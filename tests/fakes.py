from __future__ import annotations

from pathlib import Path

from crm_backend.core.config import (
    AppConfig,
    AuthConfig,
    LoggingConfig,
    MaintenanceConfig,
    SecurityConfig,
    StorageConfig,
)
from crm_backend.core.store import LocalCollection
from crm_backend.crm.repository import CRMRepository

TEST_SECRET = "test-secret-key-that-is-long-enough-123456"
START_TS = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = START_TS) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_auth_config() -> AuthConfig:
    return AuthConfig(
        secret_key=TEST_SECRET,
        access_token_ttl_seconds=300,
        refresh_token_ttl_seconds=1200,
        issuer="crm-test",
        password_iterations=1000,
    )


def build_app_config(data_dir: Path, **security: object) -> AppConfig:
    security_values: dict[str, object] = {
        "cors_allowed_origins": ["http://localhost:3000"],
        "request_max_bytes": 1024 * 1024,
        "login_rate_limit_max_attempts": 5,
        "login_rate_limit_window_seconds": 300,
        "login_rate_limit_lock_seconds": 600,
        "hide_foreign_resources": False,
    }
    security_values.update(security)
    return AppConfig(
        environment="test",
        auth=build_auth_config(),
        storage=StorageConfig(mongo_uri="", mongo_db="crm_test", data_dir=data_dir),
        logging=LoggingConfig(level="INFO"),
        security=SecurityConfig(**security_values),  # type: ignore[arg-type]
        maintenance=MaintenanceConfig(refresh_sweep_interval_seconds=3600),
    )


def build_crm_repository() -> CRMRepository:
    return CRMRepository(
        contacts=LocalCollection("contacts", unique_fields=("id",)),
        tasks=LocalCollection("tasks", unique_fields=("id",)),
        notes=LocalCollection("notes", unique_fields=("id",)),
        activities=LocalCollection("activities", unique_fields=("id",)),
    )


def seed_contact(repo: CRMRepository, contact_id: str, user_id: str, **values: object) -> None:
    record: dict[str, object] = {
        "id": contact_id,
        "user_id": user_id,
        "name": f"Contact {contact_id}",
        "email": None,
        "phone": None,
        "address": None,
        "suburb": None,
        "contact_type": "LEAD",
        "lead_source": None,
        "status": "NEW",
        "created_at": "2024-01-01T00:00:00+00:00",
        "updated_at": "2024-01-01T00:00:00+00:00",
    }
    record.update(values)
    repo.insert_contact(record)
