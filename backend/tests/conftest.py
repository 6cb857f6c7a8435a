# backend/tests/conftest.py
"""
Pytest configuration for the booking core.

Every test gets its own file-backed SQLite database so that concurrency tests
exercise real cross-connection locking. Threads must each open their own
session from ``session_factory``.
"""

import os
import sys

# Set test configuration BEFORE any package imports
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from typing import Iterator

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import classbook.models  # noqa: F401  registers tables on Base.metadata
from classbook.core.config import Settings
from classbook.database import Base
from classbook.database.engines import create_store_engine
from classbook.services import execution_mode


@pytest.fixture
def store_settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'classbook.db'}",
        db_pool_size=10,
        db_max_overflow=120,
        db_pool_timeout=60,
        sqlite_busy_timeout_seconds=60.0,
    )


@pytest.fixture
def engine(store_settings: Settings) -> Iterator[Engine]:
    engine = create_store_engine(store_settings, pool_name="test")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(autouse=True)
def _reset_execution_mode() -> Iterator[None]:
    yield
    execution_mode._MODE = None
