"""Database engine factory for the transactional store."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool, StaticPool

from ..core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _build_connect_args(config: Settings) -> dict[str, Any]:
    if config.is_sqlite:
        # The busy timeout is the SQLite equivalent of lock_timeout
        return {
            "timeout": config.sqlite_busy_timeout_seconds,
            "check_same_thread": False,
        }
    return {
        "connect_timeout": 5,
        "options": f"-c statement_timeout={config.db_statement_timeout_ms}",
        "application_name": "classbook",
    }


def _add_pool_events(engine: Engine, pool_name: str) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(_dbapi_connection: Any, _connection_record: Any) -> None:
        logger.debug("[%s] Database connection established", pool_name)

    @event.listens_for(engine, "checkout")
    def _on_checkout(
        _dbapi_connection: Any, _connection_record: Any, _connection_proxy: Any
    ) -> None:
        logger.debug("[%s] Connection checked out from pool", pool_name)

    @event.listens_for(engine, "checkin")
    def _on_checkin(_dbapi_connection: Any, _connection_record: Any) -> None:
        logger.debug("[%s] Connection returned to pool", pool_name)

    @event.listens_for(engine, "invalidate")
    def _on_invalidate(_dbapi_connection: Any, _connection_record: Any, exception: Any) -> None:
        logger.warning(
            "[%s] Connection invalidated",
            pool_name,
            extra={
                "event": "db_connection_invalidated",
                "exception": str(exception) if exception else "unknown",
            },
        )


def create_store_engine(config: Optional[Settings] = None, *, pool_name: str = "API") -> Engine:
    """Build an engine sized to the configured connection budget."""
    config = config or default_settings
    db_url = config.get_database_url()

    if config.is_memory_sqlite:
        # One shared connection; every caller serializes on it
        engine = create_engine(
            db_url,
            poolclass=StaticPool,
            connect_args=_build_connect_args(config),
            future=True,
        )
    else:
        pool_size = config.db_pool_size
        max_overflow = config.db_max_overflow
        if config.db_connection_limit is not None:
            pool_size = config.db_connection_limit
            max_overflow = 0
        engine = create_engine(
            db_url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=config.db_pool_timeout,
            pool_pre_ping=not config.is_sqlite,
            pool_use_lifo=True,
            connect_args=_build_connect_args(config),
            future=True,
        )

    _add_pool_events(engine, pool_name)
    return engine


_engine: Engine | None = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_store_engine()
    return _engine


def reset_engine(engine: Engine | None = None) -> None:
    """Dispose the process engine and optionally install a replacement."""
    global _engine
    if _engine is not None and _engine is not engine:
        _engine.dispose()
    _engine = engine


def get_pool_status(engine: Engine | None = None) -> dict[str, int]:
    """Get current database pool statistics."""
    pool = (engine or get_engine()).pool
    if not isinstance(pool, QueuePool):
        return {"size": 1, "checked_in": 0, "checked_out": 0, "total": 1, "overflow": 0}
    return {
        "size": pool.size(),
        "checked_in": pool.checkedin(),
        "checked_out": pool.checkedout(),
        "total": pool.size() + pool.overflow(),
        "overflow": pool.overflow(),
    }
