# Overview: Atomic units of work, row locking and retry helpers for the ledger.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ApiError, PersistenceError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic(failure_message: str = "Failed to save changes"):
    """
    Run the enclosed writes as one unit: commit on success, roll back on error.

    IntegrityError is re-raised untouched so callers can tell uniqueness
    races apart, and lock/staleness errors are re-raised for run_with_retry.
    Other storage errors become PersistenceError. ApiErrors raised inside
    the block roll back and propagate as-is.
    """
    try:
        yield db.session
        db.session.commit()
    except (IntegrityError, OperationalError, StaleDataError):
        db.session.rollback()
        raise
    except ApiError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("%s: rolled back", failure_message)
        raise PersistenceError(failure_message) from exc
    except BaseException:
        # Includes cancellation (KeyboardInterrupt, GeneratorExit): never leave half a unit
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise PersistenceError("Storage temporarily unavailable") from exc
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
