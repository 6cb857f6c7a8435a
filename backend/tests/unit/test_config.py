"""Settings helpers for the store URL and connection budget."""

from classbook.core.config import Settings


def test_url_connection_limit_is_parsed_and_stripped():
    config = Settings(database_url="postgresql://u:p@db/classbook?connection_limit=1&sslmode=require")

    assert config.url_connection_limit() == 1
    assert config.get_database_url() == "postgresql://u:p@db/classbook?sslmode=require"


def test_invalid_url_connection_limit_is_ignored():
    config = Settings(database_url="postgresql://u:p@db/classbook?connection_limit=abc")

    assert config.url_connection_limit() is None


def test_url_without_limit_is_unchanged():
    config = Settings(database_url="sqlite:///./classbook.db")

    assert config.url_connection_limit() is None
    assert config.get_database_url() == "sqlite:///./classbook.db"


def test_memory_sqlite_detection():
    assert Settings(database_url="sqlite://").is_memory_sqlite
    assert Settings(database_url="sqlite:///:memory:").is_memory_sqlite
    assert not Settings(database_url="sqlite:///./classbook.db").is_memory_sqlite
    assert not Settings(database_url="postgresql://u:p@db/classbook").is_sqlite
