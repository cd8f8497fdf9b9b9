"""
Retry logic with exponential backoff for SQLite lock contention.

Only the storage layer retries: every ledger error is terminal and
surfaced to the caller as is.
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from household_ledger.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_lock_contention(error: BaseException) -> bool:
    """True for "database is locked" / "database is busy" operational errors."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    message = str(error).lower()
    return "locked" in message or "busy" in message


def retry_on_sqlite_lock(
    max_attempts: int = 3,
    min_wait_ms: int = 100,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for SQLite lock contention (OperationalError).

    SQLite uses file-based locking and can report "database is locked"
    when two writers open a transaction at the same time. The operation is
    retried with exponential backoff; other operational errors (syntax,
    missing table) are raised immediately.

    Example:
        @retry_on_sqlite_lock()
        def _begin(conn):
            conn.execute("BEGIN IMMEDIATE")
    """
    return retry(
        retry=retry_if_exception(is_lock_contention),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=lambda retry_state: logger.warning(
            "SQLite lock detected, retrying",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )
