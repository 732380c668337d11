from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from app.inventory.core.error_catalog import ErrorCatalog, PersistenceError
from app.inventory.core.logging import log_json
from app.inventory.core.metrics import metrics

logger = logging.getLogger("inventory.persistence")

_LOCK_TOKENS = ("lock timeout", "deadlock detected", "database is locked", "could not obtain lock")


def is_lock_timeout(exc: Exception) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    message = str(exc).lower()
    return any(token in message for token in _LOCK_TOKENS)


@contextmanager
def persistence_guard(db, operation: str, **context):
    """Roll back and surface store failures as ``PersistenceError``.

    Lock timeouts pass through untouched so the HTTP layer can answer 409.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        if is_lock_timeout(exc):
            raise
        metrics.increment_alerted_error(ErrorCatalog.PERSISTENCE_ERROR.code)
        log_json(
            logger,
            {
                "event": "persistence.error",
                "operation": operation,
                "error_class": exc.__class__.__name__,
                "error": str(exc.orig) if getattr(exc, "orig", None) is not None else str(exc),
                **context,
            },
            level=logging.ERROR,
        )
        raise PersistenceError(details={"operation": operation, **context}) from exc
