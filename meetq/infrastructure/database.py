"""Centralized database configuration

**DATABASE POLICY**: MeetQ uses ONE SQLite database (meetq/data/meetq.db by
default, MEETQ_DB_PATH to override).  Reference data (clients, projects,
rules), filed notes, user settings and classification feedback all live there.

Provides:
- Connection helper with WAL and Row factory settings
- Transaction context manager (commit on success, rollback on error)
- Retry decorator for "database is locked" contention
- Idempotent schema initialization
"""

from __future__ import annotations

import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, TypeVar

from meetq.config import (
    DB_CONNECT_TIMEOUT,
    DB_PATH,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
)
from meetq.observability.logging import get_logger
from meetq.observability.telemetry import counter

F = TypeVar("F", bound=Callable[..., Any])

logger = get_logger(__name__)

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS clients (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        domains TEXT NOT NULL DEFAULT '[]',
        keywords TEXT NOT NULL DEFAULT '[]',
        status TEXT NOT NULL DEFAULT 'active',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        client_id TEXT NOT NULL,
        project_name TEXT NOT NULL,
        keywords TEXT NOT NULL DEFAULT '[]',
        status TEXT NOT NULL DEFAULT 'active',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (client_id) REFERENCES clients(id)
    );

    CREATE TABLE IF NOT EXISTS rules (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        priority INTEGER NOT NULL DEFAULT 0,
        conditions TEXT NOT NULL DEFAULT '{}',
        actions TEXT NOT NULL DEFAULT '{}',
        confidence_boost REAL NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'active',
        times_applied INTEGER NOT NULL DEFAULT 0,
        times_corrected INTEGER NOT NULL DEFAULT 0,
        last_applied TIMESTAMP,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS notes (
        id TEXT PRIMARY KEY,
        drive_file_id TEXT,
        drive_file_url TEXT,
        drive_file_name TEXT,
        meeting_title TEXT,
        meeting_organizer TEXT,
        meeting_attendees TEXT NOT NULL DEFAULT '[]',
        meeting_start_time TIMESTAMP,
        classification TEXT,
        status TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS user_settings (
        email TEXT PRIMARY KEY,
        gemini_notes_folder_id TEXT,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS feedback (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        note_id TEXT,
        rule_id TEXT,
        user_email TEXT,
        original_classification TEXT NOT NULL,
        corrected_classification TEXT NOT NULL,
        correction_types TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    CREATE INDEX IF NOT EXISTS idx_clients_status ON clients(status);
    CREATE INDEX IF NOT EXISTS idx_projects_status ON projects(status);
    CREATE INDEX IF NOT EXISTS idx_rules_status_priority ON rules(status, priority DESC);
    CREATE INDEX IF NOT EXISTS idx_notes_created_at ON notes(created_at DESC);
"""

EXPECTED_TABLES = ("clients", "projects", "rules", "notes", "user_settings", "feedback")


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Decorator to retry database operations on SQLITE_BUSY errors

    Implements exponential backoff with jitter to ride out transient lock
    contention.

    Usage:
        @retry_on_db_lock()
        def my_database_operation():
            with db_transaction() as conn:
                conn.execute("UPDATE ...")

    Side Effects:
        - Retries wrapped function up to max_retries times on database lock errors
        - Sleeps between retries (exponential backoff with jitter)
        - Logs warning messages for each retry attempt
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except sqlite3.OperationalError as e:
                    # Only retry on lock errors
                    if "locked" not in str(e).lower() and "busy" not in str(e).lower():
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            "Database lock retry exhausted after %d attempts: %s",
                            max_retries,
                            e,
                        )
                        counter("database.lock_retry_exhausted")
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    sleep_time = delay + random.uniform(0, delay * DB_RETRY_JITTER)

                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        sleep_time,
                        e,
                    )
                    time.sleep(sleep_time)

            raise AssertionError("unreachable")

        return wrapper  # type: ignore[return-value]

    return decorator


def get_db_path(db_path: Path | str | None = None) -> Path:
    """Explicit path wins; otherwise the configured DB_PATH."""
    return Path(db_path) if db_path is not None else DB_PATH


def sql_timestamp(value: datetime) -> str:
    """UTC in SQLite's CURRENT_TIMESTAMP layout so string comparison orders correctly."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _create_connection(db_path: Path) -> sqlite3.Connection:
    """
    Side Effects:
        - Opens database connection
        - Executes PRAGMA statements (journal_mode, synchronous, foreign_keys)
    """
    conn = sqlite3.connect(str(db_path), timeout=DB_CONNECT_TIMEOUT, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db_connection(
    db_path: Path | str | None = None,
) -> Generator[sqlite3.Connection, None, None]:
    """
    Database connection (context manager), closed on exit.

    Usage:
        with get_db_connection() as conn:
            rows = conn.execute("SELECT * FROM rules").fetchall()

    Raises:
        FileNotFoundError: If database doesn't exist (run init_database first)
    """
    path = get_db_path(db_path)
    if not path.exists():
        raise FileNotFoundError(f"Database not found: {path}\nRun: meetq-init-db")

    conn = _create_connection(path)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def db_transaction(
    db_path: Path | str | None = None,
) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database transactions

    Automatically commits on success, rolls back on error.

    Side Effects:
        - Commits transaction on success (writes changes to disk)
        - Rolls back transaction on exception (discards uncommitted changes)
    """
    with get_db_connection(db_path) as conn:
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise


def init_database(db_path: Path | str | None = None) -> Path:
    """
    Initialize database with schema (idempotent)

    Safe to run multiple times - uses CREATE TABLE IF NOT EXISTS.

    Side Effects:
        - Creates the data directory and database file if needed
        - Creates tables and indexes
    """
    path = get_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database initialized at %s", path)
    return path


def validate_schema(db_path: Path | str | None = None) -> bool:
    """
    Validate database has expected schema

    Raises:
        ValueError: If tables are missing
    """
    with get_db_connection(db_path) as conn:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()

    present = {row["name"] for row in rows}
    missing = [t for t in EXPECTED_TABLES if t not in present]
    if missing:
        raise ValueError(f"Database schema missing tables: {', '.join(missing)}")
    return True


def main() -> None:
    """Console entry point: create the schema at the configured path and check it."""
    path = init_database()
    validate_schema(path)
    logger.info("Schema verified: %s", ", ".join(EXPECTED_TABLES))
