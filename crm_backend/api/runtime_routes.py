"""Runtime route registration for health and lifecycle hooks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from fastapi import FastAPI

from crm_backend.api.contracts import HealthResponse
from crm_backend.core.maintenance import PeriodicJob


@dataclass(frozen=True)
class RuntimeRouteDeps:
    """Dependencies required to mount runtime routes."""

    refresh_token_sweeper: PeriodicJob
    on_shutdown: Callable[[], None]


def register_runtime_routes(app: FastAPI, *, deps: RuntimeRouteDeps) -> None:
    """Register the health endpoint and background job lifecycle hooks."""

    @app.on_event("startup")
    async def startup_maintenance() -> None:
        await deps.refresh_token_sweeper.start()

    @app.on_event("shutdown")
    async def shutdown_maintenance() -> None:
        await deps.refresh_token_sweeper.stop()
        deps.on_shutdown()

    @app.get("/health", response_model=HealthResponse, tags=["runtime"])
    def health() -> HealthResponse:
        return HealthResponse(status="ok")
