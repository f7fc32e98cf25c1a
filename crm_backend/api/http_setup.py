"""Perimeter middleware and the exception handlers behind the error envelope."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from crm_backend.api.contracts import ApiErrorResponse
from crm_backend.api.errors import ApiErrorCode, to_error_payload
from crm_backend.auth.errors import AuthError
from crm_backend.core.config import AppConfig
from crm_backend.core.logging import set_correlation_id

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


def _declared_length(request: Request) -> int:
    try:
        return int(request.headers.get("content-length") or 0)
    except ValueError:
        return 0


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(messages) or "Invalid request"


def _envelope(status_code: int, code: str, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiErrorResponse(code=code, error=error).model_dump(),
    )


def register_http_middleware(app: FastAPI, *, config: AppConfig, logger: Any) -> None:
    """Attach the request-size limit and the request logging middleware.

    The logging middleware is registered last so it wraps the size limit and
    still stamps headers on a 413.
    """
    max_bytes = config.security.request_max_bytes

    @app.middleware("http")
    async def request_size_limit_middleware(request: Request, call_next):
        if _declared_length(request) > max_bytes:
            return _envelope(
                413,
                ApiErrorCode.REQUEST_TOO_LARGE,
                f"Request size exceeds configured limit ({max_bytes} bytes).",
            )
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        correlation_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-correlation-id")
            or uuid.uuid4().hex
        )
        set_correlation_id(correlation_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        response.headers.update(SECURITY_HEADERS)
        logger.info(
            "request_completed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
            },
        )
        return response


def register_exception_handlers(app: FastAPI, *, logger: Any) -> None:
    """Map every failure to ``{"code", "error"}`` with its HTTP status."""

    def _log(request: Request, event: str, status_code: int, code: str) -> None:
        level = logging.ERROR if status_code >= 500 else logging.WARNING
        logger.log(
            level,
            event,
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "error_code": code,
            },
        )

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
        _log(request, "auth_error", exc.status_code, str(exc.code))
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(HTTPException)
    async def handle_http_exception(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        payload = to_error_payload(exc.detail, exc.status_code)
        _log(request, "http_exception", exc.status_code, payload["code"])
        return _envelope(exc.status_code, payload["code"], payload["error"])

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        _log(request, "validation_exception", 422, ApiErrorCode.VALIDATION_ERROR)
        return _envelope(422, ApiErrorCode.VALIDATION_ERROR, _validation_message(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception(
            "unexpected_exception",
            extra={"path": request.url.path, "method": request.method, "status_code": 500},
        )
        return _envelope(500, ApiErrorCode.INTERNAL_SERVER_ERROR, "Internal server error")
