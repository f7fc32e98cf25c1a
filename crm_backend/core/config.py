"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_SECRET_KEY = "dev-insecure-secret-change-me"
PLACEHOLDER_SECRETS = {
    DEFAULT_SECRET_KEY,
    "your-secret-key",
    "secret",
    "changeme",
    "change-me",
}
MIN_SECRET_LENGTH = 32
PRODUCTION_ENVS = {"prod", "production"}


class ConfigError(RuntimeError):
    """Raised when configuration is unsafe to serve traffic with."""


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AuthConfig:
    """Token signing and credential hashing settings."""

    secret_key: str
    access_token_ttl_seconds: int
    refresh_token_ttl_seconds: int
    issuer: str
    password_iterations: int = 120_000


@dataclass(frozen=True)
class StorageConfig:
    """Record store location settings."""

    mongo_uri: str
    mongo_db: str
    data_dir: Path


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int
    login_rate_limit_max_attempts: int
    login_rate_limit_window_seconds: int
    login_rate_limit_lock_seconds: int
    hide_foreign_resources: bool = False


@dataclass(frozen=True)
class MaintenanceConfig:
    """Background maintenance settings."""

    refresh_sweep_interval_seconds: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    environment: str
    auth: AuthConfig
    storage: StorageConfig
    logging: LoggingConfig
    security: SecurityConfig
    maintenance: MaintenanceConfig

    @property
    def is_production(self) -> bool:
        return self.environment in PRODUCTION_ENVS

    def validate(self) -> list[str]:
        """Check signing configuration.

        Raises ``ConfigError`` in production when the signing secret is blank,
        a known placeholder or too short. In other environments the same
        problems are returned as warnings so the caller can log them.
        """
        problems: list[str] = []
        secret = self.auth.secret_key
        if not secret:
            problems.append("AUTH_SECRET_KEY is not set")
        elif secret in PLACEHOLDER_SECRETS:
            problems.append("AUTH_SECRET_KEY uses a default placeholder value")
        elif len(secret) < MIN_SECRET_LENGTH:
            problems.append(
                f"AUTH_SECRET_KEY is shorter than {MIN_SECRET_LENGTH} characters"
            )
        if self.auth.access_token_ttl_seconds <= 0:
            problems.append("AUTH_ACCESS_TOKEN_TTL_SECONDS must be positive")
        if self.auth.refresh_token_ttl_seconds <= self.auth.access_token_ttl_seconds:
            problems.append(
                "AUTH_REFRESH_TOKEN_TTL_SECONDS must exceed the access token TTL"
            )

        if problems and self.is_production:
            raise ConfigError("; ".join(problems))
        return problems

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        environment = os.getenv("APP_ENV", "dev").strip().lower() or "dev"
        secret_key = os.getenv("AUTH_SECRET_KEY", "").strip()
        if not secret_key and environment not in PRODUCTION_ENVS:
            secret_key = DEFAULT_SECRET_KEY
        access_ttl = int(os.getenv("AUTH_ACCESS_TOKEN_TTL_SECONDS", "900"))
        refresh_ttl = int(os.getenv("AUTH_REFRESH_TOKEN_TTL_SECONDS", "604800"))
        issuer = os.getenv("AUTH_ISSUER", "crm-backend").strip() or "crm-backend"
        password_iterations = int(os.getenv("AUTH_PASSWORD_ITERATIONS", "120000"))
        mongo_uri = os.getenv("MONGODB_URI", "").strip()
        mongo_db = os.getenv("MONGODB_DB", "crm").strip() or "crm"
        data_dir = Path(os.getenv("CRM_DATA_DIR", "runtime").strip() or "runtime")
        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ALLOWED_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if origin.strip()
        ]
        request_max_bytes = int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024)))
        login_rate_limit_max_attempts = int(
            os.getenv("LOGIN_RATE_LIMIT_MAX_ATTEMPTS", "5")
        )
        login_rate_limit_window_seconds = int(
            os.getenv("LOGIN_RATE_LIMIT_WINDOW_SECONDS", "900")
        )
        login_rate_limit_lock_seconds = int(
            os.getenv("LOGIN_RATE_LIMIT_LOCK_SECONDS", "900")
        )
        sweep_interval = int(os.getenv("REFRESH_SWEEP_INTERVAL_SECONDS", "3600"))

        return AppConfig(
            environment=environment,
            auth=AuthConfig(
                secret_key=secret_key,
                access_token_ttl_seconds=access_ttl,
                refresh_token_ttl_seconds=refresh_ttl,
                issuer=issuer,
                password_iterations=password_iterations,
            ),
            storage=StorageConfig(
                mongo_uri=mongo_uri,
                mongo_db=mongo_db,
                data_dir=data_dir,
            ),
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
                login_rate_limit_max_attempts=login_rate_limit_max_attempts,
                login_rate_limit_window_seconds=login_rate_limit_window_seconds,
                login_rate_limit_lock_seconds=login_rate_limit_lock_seconds,
                hide_foreign_resources=_env_flag("OWNERSHIP_HIDE_FOREIGN"),
            ),
            maintenance=MaintenanceConfig(
                refresh_sweep_interval_seconds=max(1, sweep_interval),
            ),
        )
