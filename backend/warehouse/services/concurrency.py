# Overview: Row locking, retry, and storage-failure translation for write paths.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import StorageError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks, busy timeouts) and
    StaleDataError (optimistic version_id conflicts). Validation errors
    propagate untouched. Any storage failure left after the last attempt,
    or any other SQLAlchemyError, is rolled back and raised as StorageError.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error("Storage operation failed after %d attempts: %s", attempts, exc)
                raise StorageError("Storage is unavailable, please retry") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error("Storage operation failed: %s", exc)
            raise StorageError("Storage operation failed") from exc
        except Exception:
            db.session.rollback()
            raise
