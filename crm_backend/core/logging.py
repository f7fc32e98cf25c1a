"""JSON line logging for the API and maintenance jobs.

Every line carries the correlation id of the request that produced it, so a
login failure, the refresh it triggered and the revocation it caused can be
followed together.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterable

CORRELATION_ID_CTX: ContextVar[str] = ContextVar("correlation_id", default="")

# Attributes passed through ``extra=`` that are copied into the JSON payload.
EXTRA_FIELDS = (
    "user_id",
    "token_id",
    "resource_type",
    "resource_id",
    "error_code",
    "removed",
    "path",
    "method",
    "status_code",
)

NOISY_LOGGERS = ("pymongo", "uvicorn.access")


class JsonLogFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def __init__(self, service: str = "crm-backend") -> None:
        super().__init__()
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self._service,
            "logger": record.name,
            "message": record.getMessage(),
        }
        correlation_id = CORRELATION_ID_CTX.get()
        if correlation_id:
            payload["correlation_id"] = correlation_id

        payload.update(
            {
                key: getattr(record, key)
                for key in EXTRA_FIELDS
                if getattr(record, key, None) not in (None, "")
            }
        )

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
            payload["location"] = f"{record.module}:{record.lineno}"

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(
    level: str = "INFO",
    *,
    service: str = "crm-backend",
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Route all logging through one stdout handler using ``JsonLogFormatter``."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter(service))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_correlation_id(correlation_id: str) -> None:
    CORRELATION_ID_CTX.set(correlation_id)


def get_correlation_id() -> str:
    return CORRELATION_ID_CTX.get()
