# Overview: Unit of work, row locks and bounded retry shared by every write path.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import BackOfficeError, UnitOfWorkTimeout
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the unit of work
    holds the database write lock from BEGIN IMMEDIATE instead.
    """
    return query.with_for_update()


def _begin_write_transaction(timeout_seconds: float) -> None:
    dialect = db.engine.dialect.name
    timeout_ms = max(int(timeout_seconds * 1000), 1)
    if dialect == "sqlite":
        raw = db.session.connection().connection.dbapi_connection
        if not raw.in_transaction:
            # Bounds the wait for the write lock; BEGIN IMMEDIATE fails with
            # "database is locked" once it expires.
            db.session.execute(text(f"PRAGMA busy_timeout = {timeout_ms}"))
            db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        db.session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))
        db.session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))


@contextmanager
def unit_of_work():
    """
    One atomic unit of work on the shared session.

    - opens a write transaction (BEGIN IMMEDIATE on SQLite, bounded lock
      and statement timeouts on PostgreSQL)
    - commits when the block finishes within UNIT_OF_WORK_TIMEOUT_SECONDS
    - rolls back on any exception or when the budget is exceeded, so no
      partial writes are ever visible

    Waiting is bounded while the block runs: PostgreSQL aborts a statement
    or lock wait past the budget, and SQLite gives up waiting for the write
    lock after busy_timeout. SQLite has no statement timeout, so a block that
    overruns there is only caught by the elapsed check before commit.
    """
    timeout_seconds = current_app.config.get("UNIT_OF_WORK_TIMEOUT_SECONDS", 10)
    started = time.monotonic()
    try:
        _begin_write_transaction(timeout_seconds)
        yield db.session
        elapsed = time.monotonic() - started
        if elapsed > timeout_seconds:
            raise UnitOfWorkTimeout(
                "Unit of work exceeded its time budget",
                details={"elapsed_seconds": round(elapsed, 3), "budget_seconds": timeout_seconds},
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, (OperationalError, StaleDataError)):
        return True
    return isinstance(exc, BackOfficeError) and exc.retryable


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks, busy database),
    StaleDataError (optimistic locking conflicts) and retryable engine
    errors (UnitOfWorkTimeout, SequenceConflict). func is re-run with the
    same input; validation failures propagate immediately.
    """
    if attempts is None:
        attempts = current_app.config.get("RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("RETRY_BACKOFF_SECONDS", 0.1)
    attempts = max(attempts, 1)

    for attempt in range(attempts):
        try:
            return func()
        except Exception as exc:
            if not _is_transient(exc):
                raise
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Transient failure on attempt %s/%s, retrying: %s",
                attempt + 1,
                attempts,
                exc,
            )
            time.sleep(backoff_base * (2 ** attempt))


def run_in_unit_of_work(func):
    """Run func inside a fresh unit of work, retrying transient failures."""
    def _op():
        with unit_of_work():
            return func()
    return run_with_retry(_op)
