"""Brute-force protection for auth endpoints backed by SQLite runtime state."""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from threading import Lock
from typing import Callable

from crm_backend.api.errors import ApiError, ApiErrorCode
from crm_backend.core.migrations import apply_migrations

LOGGER = logging.getLogger(__name__)

Key = tuple[str, str, str]


class AuthRateLimiter:
    """Count failures per (scope, principal, client ip) and lock when exceeded.

    ``scope`` separates login, registration and refresh so failures on one
    endpoint do not lock another. A failure streak older than the window
    starts over.
    """

    def __init__(
        self,
        *,
        database_path: Path,
        max_attempts: int,
        window_seconds: int,
        lock_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        apply_migrations(database_path)
        self._connection = sqlite3.connect(str(database_path), check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = Lock()
        self._clock = clock
        self._max_attempts = max(1, int(max_attempts))
        self._window_seconds = max(1, int(window_seconds))
        self._lock_seconds = max(1, int(lock_seconds))

    @staticmethod
    def _key(scope: str, principal: str, client_ip: str) -> Key:
        return (
            scope.strip().lower(),
            principal.strip().lower(),
            client_ip.strip() or "unknown",
        )

    def _fetch(self, key: Key) -> sqlite3.Row | None:
        return self._connection.execute(
            "SELECT failed_attempts, first_failed_at, locked_until FROM auth_rate_limit "
            "WHERE scope = ? AND principal = ? AND client_ip = ?",
            key,
        ).fetchone()

    def _clear(self, key: Key) -> None:
        with self._connection:
            self._connection.execute(
                "DELETE FROM auth_rate_limit WHERE scope = ? AND principal = ? AND client_ip = ?",
                key,
            )

    def _window_elapsed(self, row: sqlite3.Row, now: int) -> bool:
        first_failed_at = int(row["first_failed_at"] or 0)
        return bool(first_failed_at) and now - first_failed_at > self._window_seconds

    def assert_allowed(self, *, scope: str, principal: str, client_ip: str) -> None:
        """Raise 429 ``RATE_LIMITED`` while the key is locked."""
        now = int(self._clock())
        key = self._key(scope, principal, client_ip)
        with self._lock:
            row = self._fetch(key)
            if row is None:
                return
            locked_until = int(row["locked_until"] or 0)
            if locked_until > now:
                LOGGER.warning(
                    "Rate limit lock active for scope=%s",
                    key[0],
                    extra={"error_code": str(ApiErrorCode.RATE_LIMITED)},
                )
                raise ApiError(
                    status_code=429,
                    error_code=ApiErrorCode.RATE_LIMITED,
                    message=f"Too many attempts. Retry after {locked_until - now} seconds.",
                )
            if self._window_elapsed(row, now):
                self._clear(key)

    def record_success(self, *, scope: str, principal: str, client_ip: str) -> None:
        with self._lock:
            self._clear(self._key(scope, principal, client_ip))

    def record_failure(self, *, scope: str, principal: str, client_ip: str) -> None:
        """Count one failure and lock the key once the threshold is reached."""
        now = int(self._clock())
        key = self._key(scope, principal, client_ip)
        with self._lock:
            row = self._fetch(key)
            if row is None or self._window_elapsed(row, now):
                attempts, first_failed_at = 1, now
            else:
                attempts = int(row["failed_attempts"] or 0) + 1
                first_failed_at = int(row["first_failed_at"] or 0) or now
            locked_until = now + self._lock_seconds if attempts >= self._max_attempts else 0

            with self._connection:
                self._connection.execute(
                    "INSERT OR REPLACE INTO auth_rate_limit(scope, principal, client_ip, "
                    "failed_attempts, first_failed_at, last_failed_at, locked_until) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (*key, attempts, first_failed_at, now, locked_until),
                )
            if locked_until:
                LOGGER.warning("Rate limit lock applied for scope=%s", key[0])

    def close(self) -> None:
        with self._lock:
            self._connection.close()
