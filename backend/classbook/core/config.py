# backend/classbook/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )

    database_url: str = Field(
        default="sqlite:///./classbook.db",
        description="SQLAlchemy URL of the single transactional store",
    )

    # Pool sizing: (pool_size + max_overflow) is the connection budget of this process
    db_pool_size: int = Field(default=5, ge=1, description="Persistent pool connections")
    db_max_overflow: int = Field(default=5, ge=0, description="Burst connections above pool size")
    db_pool_timeout: int = Field(
        default=5, ge=1, description="Seconds to wait for a pooled connection"
    )
    db_connection_limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="Hard cap on concurrent connections; overrides pool sizing when set",
    )

    db_lock_timeout_ms: int = Field(
        default=3000,
        ge=1,
        description="Maximum wait for a row lock before the operation reports contention",
    )
    db_statement_timeout_ms: int = Field(default=15000, ge=1)
    sqlite_busy_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="SQLite busy handler timeout; bounds waits on the database write lock",
    )

    swap_serialize_per_teacher: bool = Field(
        default=True,
        description="Serialize swaps onto the same teacher with a teacher-scoped lock",
    )

    slow_operation_threshold_seconds: float = Field(default=1.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def _strip_database_url(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("database_url must not be empty")
        return cleaned

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_memory_sqlite(self) -> bool:
        return self.is_sqlite and (
            self.database_url in {"sqlite://", "sqlite:///:memory:"}
            or "mode=memory" in self.database_url
        )

    def _parsed_url(self) -> Optional[URL]:
        try:
            return make_url(self.database_url)
        except ArgumentError:
            return None

    def url_connection_limit(self) -> Optional[int]:
        """Return the ``connection_limit`` query parameter of the database URL, if any."""
        url = self._parsed_url()
        raw = url.query.get("connection_limit") if url is not None else None
        if isinstance(raw, tuple):
            raw = raw[0]
        if raw is None:
            return None
        try:
            return max(1, int(raw))
        except ValueError:
            logger.warning("Invalid connection_limit=%s in database URL; ignoring", raw)
            return None

    def get_database_url(self) -> str:
        """Database URL with non-driver parameters removed."""
        url = self._parsed_url()
        if url is None or "connection_limit" not in url.query:
            return self.database_url
        return url.difference_update_query(["connection_limit"]).render_as_string(
            hide_password=False
        )


settings = Settings()
