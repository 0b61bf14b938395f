# Overview: Transaction helpers for the order core; row locks, write transactions and bounded retry.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import OrderNumberConflict
from ..extensions import db

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, StaleDataError, OrderNumberConflict)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Open the unit of work as a write transaction.

    On SQLite this issues BEGIN IMMEDIATE so concurrent checkouts serialize
    on the database write lock before they read stock. Other backends rely
    on row locks and the conditional stock UPDATE.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def _default_backoff() -> float:
    try:
        return float(current_app.config.get("RETRY_BACKOFF_BASE", 0.1))
    except RuntimeError:
        return 0.1


def run_with_retry(func, *, attempts: int = 3, backoff_base: float | None = None):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (locks, timeouts), StaleDataError and
    OrderNumberConflict. The session is rolled back before every retry, so
    func must start its unit of work from scratch. The last error is
    re-raised once attempts are exhausted.

    func must not commit: an error raised by COMMIT may follow a durable
    write, and re-running the unit of work would apply it twice. Callers
    commit once, after this returns.
    """
    if backoff_base is None:
        backoff_base = _default_backoff()
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Giving up after %d attempts: %s", attempts, exc)
                raise
            logger.info("Retrying unit of work (attempt %d/%d): %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))
