"""
Database schema definition for Billtrack.

This module contains the SQL schema, connection handling and transaction
management for the SQLite database.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, Optional

from ..core.errors import StorageError

logger = logging.getLogger(__name__)

# Database schema version
SCHEMA_VERSION = 1

CREATE_PROJECTS_TABLE = """
CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    client TEXT,
    description TEXT,
    hourly_rate TEXT,  -- Decimal string, never a float
    currency TEXT NOT NULL DEFAULT 'USD',
    color TEXT,
    archived BOOLEAN NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,  -- ISO format datetime, UTC
    updated_at TEXT NOT NULL
);
"""

CREATE_TIME_ENTRIES_TABLE = """
CREATE TABLE IF NOT EXISTS time_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL,  -- References projects.id, never cascaded
    description TEXT,
    start_time TEXT NOT NULL,  -- ISO format datetime, UTC
    end_time TEXT NOT NULL,
    duration_minutes INTEGER NOT NULL,
    billable BOOLEAN NOT NULL DEFAULT 1,
    tags TEXT,  -- JSON array of tags
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    CHECK (end_time > start_time),
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE RESTRICT
);
"""

# The CHECK on id makes the table hold at most one row.
CREATE_ACTIVE_TIMER_TABLE = """
CREATE TABLE IF NOT EXISTS active_timer (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    project_id INTEGER NOT NULL,
    description TEXT,
    start_time TEXT NOT NULL,
    tags TEXT,
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE RESTRICT
);
"""

CREATE_SCHEMA_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""

# Indexes for better query performance
CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_entries_project_id ON time_entries(project_id);",
    "CREATE INDEX IF NOT EXISTS idx_entries_start_time ON time_entries(start_time);",
    "CREATE INDEX IF NOT EXISTS idx_entries_billable ON time_entries(billable);",
    "CREATE INDEX IF NOT EXISTS idx_projects_archived ON projects(archived);",
    "CREATE INDEX IF NOT EXISTS idx_projects_name ON projects(name COLLATE NOCASE);",
]


class DatabaseManager:
    """Manages database connections, transactions and schema operations."""

    def __init__(self, db_path: Path):
        """Initialize database manager with the given database path."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get an autocommit database connection with proper cleanup."""
        try:
            conn = sqlite3.connect(str(self.db_path), isolation_level=None, timeout=10.0)
        except sqlite3.Error as e:
            logger.error("Could not open database %s: %s", self.db_path, e)
            raise StorageError(f"Could not open database: {e}") from e
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode = WAL")
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            logger.error("Database error: %s", e)
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Run a block inside a write transaction.

        The write lock is taken up front with BEGIN IMMEDIATE so that a
        check-then-write inside the block cannot interleave with another
        writer. Any exception rolls the transaction back.
        """
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")

    def initialize_database(self) -> None:
        """Initialize the database with the current schema."""
        with self.transaction() as conn:
            conn.execute(CREATE_SCHEMA_VERSION_TABLE)

            current_version = self._get_schema_version(conn)

            if current_version is None:
                # Fresh database, create all tables
                self._create_tables(conn)
                self._set_schema_version(conn, SCHEMA_VERSION)
                logger.info("Initialized database at %s", self.db_path)
            elif current_version > SCHEMA_VERSION:
                raise StorageError(
                    f"Database schema version {current_version} is newer than "
                    f"supported version {SCHEMA_VERSION}"
                )

    def _create_tables(self, conn: sqlite3.Connection) -> None:
        """Create all database tables."""
        conn.execute(CREATE_PROJECTS_TABLE)
        conn.execute(CREATE_TIME_ENTRIES_TABLE)
        conn.execute(CREATE_ACTIVE_TIMER_TABLE)

        for index_sql in CREATE_INDEXES:
            conn.execute(index_sql)

    def _get_schema_version(self, conn: sqlite3.Connection) -> Optional[int]:
        """Get the current schema version."""
        cursor = conn.execute("SELECT MAX(version) FROM schema_version")
        result = cursor.fetchone()
        return result[0] if result and result[0] is not None else None

    def _set_schema_version(self, conn: sqlite3.Connection, version: int) -> None:
        """Set the schema version."""
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))

    def get_database_stats(self) -> Dict[str, Any]:
        """Get basic database statistics."""
        if not self.db_path.exists():
            return {
                "projects": 0,
                "time_entries": 0,
                "timer_running": False,
                "first_entry": None,
                "last_entry": None,
                "database_size": 0,
            }

        with self.get_connection() as conn:
            projects = conn.execute("SELECT COUNT(*) FROM projects").fetchone()[0]
            entries = conn.execute(
                """
                SELECT
                    COUNT(*) as total_entries,
                    MIN(start_time) as first_entry,
                    MAX(start_time) as last_entry
                FROM time_entries
            """
            ).fetchone()
            running = conn.execute("SELECT COUNT(*) FROM active_timer").fetchone()[0]

        return {
            "projects": projects,
            "time_entries": entries["total_entries"],
            "timer_running": running > 0,
            "first_entry": entries["first_entry"],
            "last_entry": entries["last_entry"],
            "database_size": self.db_path.stat().st_size,
        }
