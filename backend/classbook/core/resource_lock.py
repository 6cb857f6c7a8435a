"""
Transaction-scoped resource locks backed by the store's own lock manager.

Every lock taken here lives exactly as long as the surrounding transaction:
it is released by commit or rollback and never by application code. That
keeps mutual exclusion correct across any number of processes sharing the
store, which an in-process mutex cannot do.

Dialects:

* PostgreSQL: ``SET LOCAL lock_timeout`` bounds the wait, then
  ``SELECT ... FOR UPDATE`` locks the session row. Teacher schedules use
  ``pg_advisory_xact_lock``.
* SQLite: a no-op ``UPDATE`` of the row takes the database write lock for the
  rest of the transaction; the connection busy timeout bounds the wait.
  SQLite has a single writer, so teacher schedules need no extra lock.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, text, update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.class_session import ClassSession
from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings
from .exceptions import LockContentionException, NotFoundException, RepositoryException

logger = logging.getLogger(__name__)

# lock_not_available, deadlock_detected, serialization_failure
_CONTENTION_SQLSTATES = frozenset({"55P03", "40P01", "40001"})
_CONTENTION_SNIPPETS = (
    "database is locked",
    "database table is locked",
    "lock timeout",
    "lock_timeout",
    "could not obtain lock",
    "deadlock detected",
    "could not serialize access",
)


def _sqlstate(exc: BaseException) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_contention_error(exc: BaseException) -> bool:
    """
    True when ``exc`` (or anything in its cause chain) is a lock timeout,
    deadlock or serialization failure reported by the store.
    """
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, LockContentionException):
            return True
        if isinstance(current, DBAPIError):
            if _sqlstate(current) in _CONTENTION_SQLSTATES:
                return True
            message = str(current).lower()
            if any(snippet in message for snippet in _CONTENTION_SNIPPETS):
                return True
        current = current.__cause__ or current.__context__
    return False


def store_dialect(db: Session) -> str:
    """Dialect name of the engine or connection the session executes on."""
    return db.get_bind().dialect.name


def _lock_key(resource: str, resource_id: str) -> str:
    return f"{resource}:{resource_id}:mutex"


def _set_local_lock_timeout(db: Session) -> None:
    timeout_ms = int(settings.db_lock_timeout_ms)
    db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


def _raise_for_lock_error(exc: SQLAlchemyError, resource: str, resource_id: str) -> None:
    if is_contention_error(exc):
        prometheus_metrics.record_resource_lock(resource, "contended")
        logger.warning(
            "resource_lock_contended",
            extra={
                "resource": resource,
                "resource_id": resource_id,
                "sqlstate": _sqlstate(exc),
                "error_type": type(exc).__name__,
            },
        )
        raise LockContentionException(
            details={"resource": resource, "resource_id": resource_id}
        ) from exc

    prometheus_metrics.record_resource_lock(resource, "error")
    logger.error(
        "resource_lock_failed",
        extra={"resource": resource, "resource_id": resource_id, "error": str(exc)},
    )
    raise RepositoryException(f"Failed to lock {_lock_key(resource, resource_id)}") from exc


def lock_class_session(db: Session, session_id: str) -> None:
    """
    Serialize capacity and assignment mutations on one class session.

    Must be the first statement of the transaction that reads the session's
    mutable state. Blocks while another transaction holds the lock.

    Raises:
        NotFoundException: the session does not exist
        LockContentionException: lock wait timed out or the store broke a deadlock
        RepositoryException: any other store failure
    """
    dialect = store_dialect(db)
    try:
        if dialect == "sqlite":
            result = db.execute(
                update(ClassSession)
                .where(ClassSession.id == session_id)
                .values(updated_at=ClassSession.updated_at)
                .execution_options(synchronize_session=False)
            )
            found = result.rowcount > 0
        else:
            if dialect == "postgresql":
                _set_local_lock_timeout(db)
            found = (
                db.execute(
                    select(ClassSession.id).where(ClassSession.id == session_id).with_for_update()
                ).scalar_one_or_none()
                is not None
            )
    except SQLAlchemyError as exc:
        _raise_for_lock_error(exc, "class_session", session_id)

    if not found:
        prometheus_metrics.record_resource_lock("class_session", "missing")
        raise NotFoundException(
            "Class session not found",
            code="NOT_FOUND",
            details={"class_session_id": session_id},
        )

    prometheus_metrics.record_resource_lock("class_session", "acquired")
    logger.debug("resource_lock_acquired", extra={"key": _lock_key("class_session", session_id)})


def lock_teacher_schedule(db: Session, teacher_id: str) -> None:
    """
    Serialize assignments onto one teacher for the rest of the transaction.

    Always taken after the class session lock so lock order is global.
    """
    if not settings.swap_serialize_per_teacher:
        return
    if store_dialect(db) != "postgresql":
        return

    try:
        _set_local_lock_timeout(db)
        db.execute(
            text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))"),
            {"key": _lock_key("teacher_schedule", teacher_id)},
        )
    except SQLAlchemyError as exc:
        _raise_for_lock_error(exc, "teacher_schedule", teacher_id)

    prometheus_metrics.record_resource_lock("teacher_schedule", "acquired")
