# Overview: Locking, write-lock acquisition and retry helpers shared by every stock-mutating workflow.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, see begin_immediate().
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """
    On SQLite, take the database write lock before the first read of a
    read-modify-write workflow so the read and the write cannot interleave
    with another writer. No-op on other dialects (they use row locks) and
    when the connection is already inside a write transaction.
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_conn = db.session.connection().connection.dbapi_connection
    if getattr(dbapi_conn, "in_transaction", False):
        return
    db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, "database is locked") and
    StaleDataError. Domain errors propagate immediately.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
