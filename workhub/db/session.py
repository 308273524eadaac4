"""
Database session management. SQLAlchemy 2.x style.
"""

from collections.abc import Generator
from typing import Any

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from workhub.config import get_settings


def engine_options(database_url: str, *, connect_timeout: int = 10, echo: bool = False) -> dict[str, Any]:
    """Keyword arguments for create_engine, by backend.

    Postgres gets a bounded pool, a connect timeout and a UTC session timezone.
    SQLite (local runs and tests) must allow cross-thread use of a connection.
    """
    if database_url.startswith("sqlite"):
        return {"echo": echo, "connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "echo": echo,
        "connect_args": {
            "connect_timeout": connect_timeout,
            "options": "-c timezone=UTC",
        },
    }


def configure_sqlite_engine(sqlite_engine: Engine) -> Engine:
    """Enable foreign keys and write-locking transactions on a SQLite engine.

    pysqlite defers BEGIN until the first write, so read-modify-write sequences
    (rate-limit counters, issue counters) would not serialize. Emitting
    BEGIN IMMEDIATE takes the database write lock when the transaction starts.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sqlite_engine, "begin")
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return sqlite_engine


settings = get_settings()
engine = create_engine(
    settings.database_url,
    **engine_options(
        settings.database_url,
        connect_timeout=settings.db_connect_timeout,
        echo=settings.debug,
    ),
)
if settings.is_sqlite:
    configure_sqlite_engine(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""


def check_db_connection() -> None:
    """
    Verify database connectivity. Raises if unreachable.
    Call during application startup.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def get_db() -> Generator[Session, None, None]:
    """Dependency for FastAPI to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
