# Overview: Transaction and retry helpers shared by every order core unit of work.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import LockContention
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_immediate() covers it there.
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """
    On SQLite, take the database write lock before the first read.

    Without it two writers can both read the same stock value and the
    second decrement is lost. Skipped when the connection is already inside
    a transaction, which already holds the lock after its first write.
    """
    if db.engine.dialect.name != "sqlite":
        return
    conn = db.session.connection()
    if conn.connection.dbapi_connection.in_transaction:
        return
    db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back and propagates unchanged; business-rule failures are never retried.
    Raises LockContention once the attempts are used up.
    """
    if attempts is None:
        attempts = current_app.config.get("LOCK_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LOCK_RETRY_BACKOFF", 0.1)

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                break
            current_app.logger.warning(
                "Lock contention (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise

    raise LockContention(
        "Could not complete operation due to concurrent updates; retry later",
        details={"attempts": attempts, "cause": str(last_exc)},
    ) from last_exc


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run func as one unit of work: lock, execute, commit.

    Either everything func flushed is committed or nothing is.
    """
    def _op():
        begin_immediate()
        result = func()
        db.session.commit()
        return result

    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
