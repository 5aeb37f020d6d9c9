from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from almacen.core.errors import ConflictError, DependencyError


logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATEs: serialization_failure, deadlock_detected, lock_not_available.
CONTENTION_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
CONTENTION_MESSAGES = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "lock timeout",
    "lock wait timeout",
    "could not obtain lock",
    "could not serialize access",
)


def is_lock_contention(exc: Exception) -> bool:
    """True when ``exc`` reports a lock conflict rather than an unreachable database."""
    if isinstance(exc, StaleDataError):
        return True
    if getattr(exc, "connection_invalidated", False):
        return False
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in CONTENTION_SQLSTATES:
        return True
    message = str(orig if orig is not None else exc).lower()
    return any(fragment in message for fragment in CONTENTION_MESSAGES)


def run_with_retry(
    db: Session,
    func: Callable[[], T],
    *,
    attempts: int = 3,
    backoff_base: float = 0.05,
) -> T:
    """
    Run a unit of work, retrying on lock contention.

    Deadlocks, lock timeouts, SQLite "database is locked" and StaleDataError
    are retried with exponential backoff, rolling the session back between
    attempts; when every attempt fails the conflict is reported as
    ConflictError. Any other OperationalError (refused connection, dropped
    connection) is raised at once as DependencyError.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.rollback()
            if not is_lock_contention(exc):
                logger.error("Database unavailable: %s", exc)
                raise DependencyError("Base de datos no disponible") from exc
            if attempt >= attempts - 1:
                logger.warning("Write conflict not resolved after %s attempts: %s", attempts, exc)
                raise ConflictError("Conflicto de concurrencia, intente de nuevo") from exc
            delay = backoff_base * (2**attempt)
            logger.warning("Write conflict on attempt %s, retrying in %.2fs", attempt + 1, delay)
            time.sleep(delay)
    raise ConflictError("Conflicto de concurrencia, intente de nuevo")
