"""
Database Package Initialization.

============================================================
RELATIONAL METRIC PERSISTENCE
============================================================

This package provides the SQL backend of the metric store.
All writes run in explicit transactions with commit/rollback.

============================================================
"""

# Core engine and session management
from .engine import (
    # Declarative base
    Base,

    # Engine creation
    create_database_engine,
    create_session_factory,

    # Session management
    get_db_session,
    transaction_scope,

    # Database initialization
    initialize_database,
    verify_database_connection,
    create_all_tables,

    # Error translation
    translate_db_error,
)

# ORM Models
from .models import StoredMetric

# Metric store
from .metric_store import DBStorage


__all__ = [
    "Base",
    "create_database_engine",
    "create_session_factory",
    "get_db_session",
    "transaction_scope",
    "initialize_database",
    "verify_database_connection",
    "create_all_tables",
    "translate_db_error",
    "StoredMetric",
    "DBStorage",
]
