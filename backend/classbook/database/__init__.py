"""
Declarative base, engine and session factories shared across the package.
"""

from sqlalchemy.orm import DeclarativeMeta, declarative_base

Base: DeclarativeMeta = declarative_base()

from .engines import get_engine, get_pool_status, reset_engine  # noqa: E402
from .sessions import SessionLocal, get_db_session, init_session_factory  # noqa: E402

__all__ = [
    "Base",
    "SessionLocal",
    "get_db_session",
    "get_engine",
    "get_pool_status",
    "init_session_factory",
    "reset_engine",
]
