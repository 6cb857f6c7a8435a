"""Session factory for the transactional store."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .engines import get_engine

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)


def init_session_factory(engine: Engine | None = None) -> None:
    """Bind the session factory (idempotent)."""
    SessionLocal.configure(bind=engine or get_engine())


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context manager for short-lived DB operations."""
    if SessionLocal.kw.get("bind") is None:
        init_session_factory()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


__all__ = ["SessionLocal", "get_db_session", "init_session_factory"]
