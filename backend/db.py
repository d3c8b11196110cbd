# backend/db.py
# Database abstraction layer supporting PostgreSQL (production) and SQLite (dev/tests)

import sqlite3
from contextlib import contextmanager
from pathlib import Path as FsPath
from typing import Any, Dict, Generator, List, Optional, Union
from urllib.parse import urlparse

from sqlalchemy import create_engine, pool, text
from sqlalchemy.engine import Connection, Engine

try:
    from backend.config import DATABASE_PATH, DATABASE_URL, IS_DEV, IS_POSTGRES
except ModuleNotFoundError:
    from config import DATABASE_PATH, DATABASE_URL, IS_DEV, IS_POSTGRES

DbConnection = Union[sqlite3.Connection, Connection]

# Global engine (SQLAlchemy) or None for SQLite
_engine: Optional[Engine] = None


def sqlite_path() -> str:
    """Absolute SQLite file path (DATABASE_PATH is relative to backend/ unless absolute)."""
    return str(FsPath(__file__).resolve().parent / DATABASE_PATH)


def init_engine() -> None:
    """Initialize SQLAlchemy engine for PostgreSQL if DATABASE_URL is set."""
    global _engine

    if not IS_POSTGRES:
        # SQLite mode - no engine needed
        _engine = None
        print("[DB] Using SQLite (local dev mode)")
        return

    parsed = urlparse(DATABASE_URL)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid DATABASE_URL: {DATABASE_URL[:20]}...")

    # SQLAlchemy only accepts the postgresql:// scheme
    url = DATABASE_URL
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]

    _engine = create_engine(
        url,
        poolclass=pool.QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        echo=False,
    )

    print(f"[DB] Using PostgreSQL ({parsed.hostname})")


@contextmanager
def get_db_connection() -> Generator[DbConnection, None, None]:
    """
    Context manager for database connections.
    Returns sqlite3.Connection for SQLite or sqlalchemy.Connection for Postgres.
    """
    if IS_POSTGRES:
        if _engine is None:
            init_engine()

        with _engine.connect() as conn:
            yield conn
    else:
        conn = sqlite3.connect(sqlite_path(), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()


def row_to_dict(row: Any) -> Dict[str, Any]:
    """Convert a sqlite3.Row or SQLAlchemy Row to a plain dict ({} for None)."""
    if row is None:
        return {}
    if hasattr(row, "_mapping"):
        return dict(row._mapping)
    return dict(row)


def execute_query(conn: DbConnection, query: str, params: Optional[Dict[str, Any]] = None) -> Any:
    """
    Execute a query with named parameters (``:name`` style).

    Both sqlite3 and SQLAlchemy ``text()`` accept ``:name`` placeholders,
    so queries are written once for both backends.

    Returns:
        Cursor (SQLite) or CursorResult (PostgreSQL)
    """
    if IS_POSTGRES:
        return conn.execute(text(query), params or {})

    cur = conn.cursor()
    return cur.execute(query, params or {})


def fetch_all(conn: DbConnection, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    result = execute_query(conn, query, params)
    return [row_to_dict(row) for row in result.fetchall()]


def fetch_one(conn: DbConnection, query: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    row = execute_query(conn, query, params).fetchone()
    return row_to_dict(row) if row is not None else None


def insert_returning_id(conn: DbConnection, query: str, params: Dict[str, Any]) -> int:
    """Run an INSERT and return the new row id."""
    if IS_POSTGRES:
        return int(conn.execute(text(query + " RETURNING id"), params).scalar_one())

    cur = conn.cursor()
    cur.execute(query, params)
    return int(cur.lastrowid)


def commit(conn: DbConnection) -> None:
    conn.commit()


# ---------------------------------------------------------
# Schema
# ---------------------------------------------------------
def _pk() -> str:
    return "SERIAL PRIMARY KEY" if IS_POSTGRES else "INTEGER PRIMARY KEY AUTOINCREMENT"


def schema_statements() -> List[str]:
    pk = _pk()
    return [
        f"""
        CREATE TABLE IF NOT EXISTS users (
            id {pk},
            email TEXT UNIQUE NOT NULL,
            role TEXT NOT NULL DEFAULT 'investor',
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS properties (
            id {pk},
            name TEXT NOT NULL,
            location TEXT NOT NULL DEFAULT '',
            property_type TEXT NOT NULL DEFAULT 'residential',
            target_return TEXT NOT NULL,
            funding_goal REAL NOT NULL DEFAULT 0,
            funding_progress REAL NOT NULL DEFAULT 0,
            min_investment REAL NOT NULL DEFAULT 0,
            duration_months INTEGER,
            status TEXT NOT NULL DEFAULT 'pending',
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS investments (
            id {pk},
            user_id INTEGER NOT NULL REFERENCES users(id),
            property_id INTEGER NOT NULL REFERENCES properties(id),
            amount REAL NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            start_date TEXT NOT NULL,
            earnings REAL,
            monthly_returns_json TEXT,
            created_at TEXT NOT NULL
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS transactions (
            id {pk},
            user_id INTEGER NOT NULL REFERENCES users(id),
            investment_id INTEGER REFERENCES investments(id),
            type TEXT NOT NULL,
            amount REAL NOT NULL,
            status TEXT NOT NULL DEFAULT 'completed',
            created_at TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_investments_user_id ON investments(user_id)",
        "CREATE INDEX IF NOT EXISTS idx_investments_property_id ON investments(property_id)",
        "CREATE INDEX IF NOT EXISTS idx_transactions_user_type ON transactions(user_id, type)",
    ]


def init_db() -> None:
    """Create tables and indexes if missing (idempotent)."""
    with get_db_connection() as conn:
        for statement in schema_statements():
            execute_query(conn, statement)
        commit(conn)
    if IS_DEV:
        print("[DB] Schema ensured: users, properties, investments, transactions")
