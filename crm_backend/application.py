"""FastAPI application factory wiring storage, auth and CRM services."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crm_backend.api.http_setup import register_exception_handlers, register_http_middleware
from crm_backend.api.runtime_routes import RuntimeRouteDeps, register_runtime_routes
from crm_backend.auth.middleware import AccessTokenAuthenticator, create_auth_middleware
from crm_backend.auth.ownership import OwnershipGuard
from crm_backend.auth.rate_limiter import AuthRateLimiter
from crm_backend.auth.registry import RefreshTokenRegistry
from crm_backend.auth.repository import UserRepository
from crm_backend.auth.router import create_auth_router
from crm_backend.auth.service import AuthService
from crm_backend.auth.tokens import TokenIssuer, TokenSigner
from crm_backend.core.config import AppConfig
from crm_backend.core.maintenance import PeriodicJob
from crm_backend.core.mongo_migrations import apply_mongo_migrations
from crm_backend.core.store import StoreFactory
from crm_backend.crm.repository import CRMRepository
from crm_backend.crm.router import create_crm_router
from crm_backend.crm.service import CRMService
from crm_backend.users.router import create_users_router
from crm_backend.users.service import UserService

LOGGER = logging.getLogger(__name__)

RATE_LIMIT_DB_NAME = "auth_state.sqlite3"


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Build the API app; raises ``ConfigError`` for unsafe production config."""
    config = config or AppConfig.from_env()
    for problem in config.validate():
        LOGGER.warning("Insecure auth configuration: %s", problem)

    store = StoreFactory(
        mongo_uri=config.storage.mongo_uri,
        mongo_db=config.storage.mongo_db,
        data_dir=config.storage.data_dir,
        strict=config.is_production,
    )
    if store.database is not None:
        apply_mongo_migrations(store.database)

    users = UserRepository(store.collection("users", unique_fields=("id", "email")))
    crm_repo = CRMRepository(
        contacts=store.collection("contacts", unique_fields=("id",)),
        tasks=store.collection("tasks", unique_fields=("id",)),
        notes=store.collection("notes", unique_fields=("id",)),
        activities=store.collection("activities", unique_fields=("id",)),
    )
    signer = TokenSigner(config.auth.secret_key, config.auth.issuer)
    registry = RefreshTokenRegistry(
        store.process_collection("refresh_tokens", unique_fields=("token_id",)),
        signer,
    )
    issuer = TokenIssuer(signer, registry, config.auth)
    auth_service = AuthService(users, issuer, registry, config.auth)
    rate_limiter = AuthRateLimiter(
        database_path=config.storage.data_dir / RATE_LIMIT_DB_NAME,
        max_attempts=config.security.login_rate_limit_max_attempts,
        window_seconds=config.security.login_rate_limit_window_seconds,
        lock_seconds=config.security.login_rate_limit_lock_seconds,
    )
    guard = OwnershipGuard(
        crm_repo, hide_foreign_resources=config.security.hide_foreign_resources
    )
    sweeper = PeriodicJob(
        "refresh_token_sweep",
        registry.sweep,
        interval_seconds=config.maintenance.refresh_sweep_interval_seconds,
    )

    def close_resources() -> None:
        rate_limiter.close()
        store.close()

    app = FastAPI(title="CRM Backend API", version="1.0.0")
    app.state.config = config
    app.state.refresh_registry = registry
    app.state.token_issuer = issuer

    app.middleware("http")(
        create_auth_middleware(AccessTokenAuthenticator(issuer, users))
    )
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )

    register_runtime_routes(
        app,
        deps=RuntimeRouteDeps(refresh_token_sweeper=sweeper, on_shutdown=close_resources),
    )
    app.include_router(create_auth_router(auth_service, rate_limiter))
    app.include_router(create_users_router(UserService(users, registry, config.auth)))
    app.include_router(create_crm_router(CRMService(repo=crm_repo, guard=guard)))
    return app
