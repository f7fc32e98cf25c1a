from __future__ import annotations

import asyncio

from fastapi import FastAPI
from fastapi.routing import APIRoute

from crm_backend.api.runtime_routes import RuntimeRouteDeps, register_runtime_routes
from crm_backend.core.maintenance import PeriodicJob


class _DummySweeper:
    def __init__(self) -> None:
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True


def _build_app() -> tuple[FastAPI, _DummySweeper, dict[str, bool]]:
    app = FastAPI()
    sweeper = _DummySweeper()
    shutdown_state = {"closed": False}
    deps = RuntimeRouteDeps(
        refresh_token_sweeper=sweeper,  # type: ignore[arg-type]
        on_shutdown=lambda: shutdown_state.__setitem__("closed", True),
    )
    register_runtime_routes(app, deps=deps)
    return app, sweeper, shutdown_state


def _route(app: FastAPI, path: str, method: str):
    for route in app.routes:
        if isinstance(route, APIRoute) and route.path == path and method in route.methods:
            return route.endpoint
    raise AssertionError(f"Route {method} {path} not found")


def test_runtime_routes_health() -> None:
    app, _, _ = _build_app()

    assert _route(app, "/health", "GET")().model_dump() == {"status": "ok"}


def test_runtime_routes_startup_and_shutdown_hooks_manage_sweeper() -> None:
    app, sweeper, shutdown_state = _build_app()

    for hook in app.router.on_startup:
        asyncio.run(hook())
    for hook in app.router.on_shutdown:
        asyncio.run(hook())

    assert sweeper.started is True
    assert sweeper.stopped is True
    assert shutdown_state["closed"] is True


def test_periodic_job_runs_until_stopped() -> None:
    calls: list[int] = []

    def job() -> int:
        calls.append(1)
        return 1

    async def scenario() -> bool:
        periodic = PeriodicJob("count", job, interval_seconds=0.01)
        await periodic.start()
        await periodic.start()
        await asyncio.sleep(0.1)
        await periodic.stop()
        return periodic.running

    assert asyncio.run(scenario()) is False
    assert len(calls) >= 1


def test_periodic_job_run_once_survives_failures() -> None:
    def job() -> int:
        raise RuntimeError("store offline")

    assert PeriodicJob("broken", job, interval_seconds=1).run_once() == 0
    assert PeriodicJob("ok", lambda: 3, interval_seconds=1).run_once() == 3
