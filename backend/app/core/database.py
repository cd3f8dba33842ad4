"""
database.py — Database Engine, Session Factory & Request Session Dependency

Purpose:
- Build the SQLAlchemy Engine and Session factory from a database URL.
- Provide the shared declarative Base for all ORM models.
- Expose a FastAPI dependency `get_db()` that yields a session per request.

Key Characteristics:
- Synchronous SQLAlchemy engine.
- The engine and session factory are built by create_app() and stored on
  `app.state`; there is no module-level engine, so tests and scripts can
  inject their own.
- Session is opened at the start of a request and closed after the response.

This module does NOT:
- Define ORM models (see app/models/*).
- Perform any queries or business logic.
"""

from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Base class which all database models inherit from
Base = declarative_base()

# -----------------------------------------------------------------------------
# SQLAlchemy Engine
# -----------------------------------------------------------------------------

def normalize_database_url(db_url: str) -> str:
    """
    Use the psycopg (v3) driver for bare postgresql:// URLs.
    SQLAlchemy 2.0+ supports psycopg3 under the `postgresql+psycopg` name.
    """
    db_url = db_url.strip()
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql://", 1)
    if db_url.startswith("postgresql://") and "+" not in db_url.split("://")[0]:
        db_url = db_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return db_url


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(db_url: str) -> Engine:
    """
    Create a database engine.

    SQLite needs `check_same_thread=False` because FastAPI runs sync handlers
    in a threadpool; in-memory SQLite additionally needs a single shared
    connection or every session would see an empty database.
    """
    if not db_url or not db_url.strip():
        raise RuntimeError(
            "Database is not configured. Please set the DATABASE_URL environment variable."
        )

    db_url = normalize_database_url(db_url)

    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if db_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in db_url:
            kwargs["poolclass"] = StaticPool
        engine = create_engine(db_url, **kwargs)
        # SQLite ignores FOREIGN KEY ... ON DELETE CASCADE unless asked per connection
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        db_url,
        pool_pre_ping=True  # Ensures connections are valid before use
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine
    )


def create_tables(engine: Engine) -> None:
    """Create any missing tables for the registered models."""
    # Model modules register themselves on Base.metadata when imported
    from app.models import todo, user  # noqa: F401

    Base.metadata.create_all(bind=engine)

# -----------------------------------------------------------------------------
# FastAPI Dependency
# -----------------------------------------------------------------------------

def get_db(request: Request) -> Iterator[Session]:
    """
    FastAPI dependency: yields a database session for the duration of the request.

    Usage in API endpoint:
        def endpoint(db: Session = Depends(get_db)):
            db.query(...)
    """
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        raise RuntimeError("Database session factory is not configured on the application.")

    db = session_factory()
    try:
        yield db
    finally:
        db.close()
