"""
Database Persistence Layer - Core Engine.

============================================================
DATABASE PERSISTENCE FOR METRICS
============================================================

This module provides the SQLAlchemy plumbing used by the
relational metric store.

Requirements:
- SQLAlchemy ORM (PostgreSQL in production, SQLite locally)
- Explicit transaction management
- Storage errors translated into the metrics taxonomy
- Engine owned by the caller, no module-level state

============================================================
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import (
    ArgumentError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from core.exceptions import (
    MetricsException,
    StorageError,
    StorageUnavailableError,
    UniqueConstraintRaceError,
)


logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"


# =============================================================
# DECLARATIVE BASE
# =============================================================

class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


# =============================================================
# DATABASE ENGINE
# =============================================================

def normalize_database_url(url: str) -> str:
    """Map DSN spellings SQLAlchemy does not accept to ones it does."""
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql+asyncpg"):
        url = url.replace("postgresql+asyncpg", "postgresql", 1)
    return url


def redact_database_url(url: str) -> str:
    """Drop credentials before logging a URL."""
    return url.split("@")[-1]


def create_database_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    Args:
        database_url: SQLAlchemy URL or libpq-style postgres:// DSN
        pool_size: Number of connections to keep in pool
        max_overflow: Max connections beyond pool_size
        pool_timeout: Seconds to wait for available connection
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine

    Raises:
        StorageUnavailableError if the URL is empty or malformed
    """
    if not database_url:
        raise StorageUnavailableError("incorrect database URL")

    database_url = normalize_database_url(database_url)
    logger.info(f"Creating database engine for: {redact_database_url(database_url)}")

    kwargs = {"echo": echo, "future": True}
    if not database_url.startswith("sqlite"):
        kwargs.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
        )

    try:
        engine = create_engine(database_url, **kwargs)
    except (ArgumentError, ImportError) as e:
        raise StorageUnavailableError(f"Cannot create database engine: {e}", cause=e) from e

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


# =============================================================
# ERROR TRANSLATION
# =============================================================

def is_unique_violation(error: IntegrityError) -> bool:
    """Check whether an integrity error is a unique-key collision."""
    orig = error.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == UNIQUE_VIOLATION_SQLSTATE

    error_str = str(orig).lower()
    return "unique" in error_str or "duplicate" in error_str


def translate_db_error(error: SQLAlchemyError) -> StorageError:
    """Wrap a SQLAlchemy error in the storage exception taxonomy."""
    if isinstance(error, IntegrityError) and is_unique_violation(error):
        return UniqueConstraintRaceError(
            f"unique constraint violation: {error.orig}", cause=error
        )
    if isinstance(error, OperationalError):
        return StorageUnavailableError(f"database unavailable: {error.orig}", cause=error)
    return StorageError(f"database error: {error}", cause=error)


# =============================================================
# SESSION MANAGEMENT
# =============================================================

@contextmanager
def get_db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for read-only sessions with automatic cleanup.

    Usage:
        with get_db_session(factory) as session:
            rows = session.execute(stmt).all()
    """
    session = session_factory()
    try:
        yield session
    except SQLAlchemyError as e:
        logger.error(f"Database error, rolling back: {e}")
        session.rollback()
        raise translate_db_error(e) from e
    finally:
        session.close()


@contextmanager
def transaction_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception.

    Usage:
        with transaction_scope(factory) as session:
            apply(session, first)
            apply(session, second)
            # Commits automatically at end
    """
    session = session_factory()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise translate_db_error(e) from e
    except MetricsException as e:
        logger.info(f"Transaction rejected, rolling back: {e}")
        session.rollback()
        raise
    except Exception as e:
        logger.error(f"Transaction failed with unexpected error: {e}")
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================

def verify_database_connection(engine: Engine) -> None:
    """
    Verify database connection is working.

    Raises:
        StorageUnavailableError if connection fails
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        raise StorageUnavailableError(f"Cannot connect to database: {e}", cause=e) from e


def create_all_tables(engine: Engine) -> None:
    """
    Create all tables defined in ORM models.

    Raises:
        StorageUnavailableError if table creation fails
    """
    from . import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        raise StorageUnavailableError(f"Table creation failed: {e}", cause=e) from e


def initialize_database(database_url: str) -> Engine:
    """
    Full database initialization sequence.

    1. Create engine
    2. Verify connection
    3. Create tables if not exist

    Returns:
        Ready-to-use engine

    Raises:
        StorageUnavailableError on any failure (engine is disposed)
    """
    engine = create_database_engine(database_url)
    try:
        verify_database_connection(engine)
        create_all_tables(engine)
    except StorageUnavailableError:
        engine.dispose()
        raise

    logger.info("Database initialization complete")
    return engine
