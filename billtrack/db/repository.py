"""
Database repositories for Billtrack.

This module provides the data access layer for projects, time entries and
the active timer singleton. Methods that take a ``conn`` run inside a
transaction opened by the caller; the others open their own short-lived
connection.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from .models import ActiveTimer, Project, TimeEntry
from .schema import DatabaseManager

logger = logging.getLogger(__name__)


def to_db_time(dt: datetime) -> str:
    """Serialize an aware datetime as a fixed-width UTC ISO string."""
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str) -> datetime:
    """Parse a stored UTC ISO string."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class ProjectRepository:
    """Repository for managing projects in the database."""

    def __init__(self, db_manager: DatabaseManager):
        """Initialize repository with database manager."""
        self.db_manager = db_manager

    def create_project(self, project: Project) -> Project:
        """Insert a new project and return it with its assigned id."""
        with self.db_manager.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO projects (name, client, description, hourly_rate, currency,
                                      color, archived, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    project.name,
                    project.client,
                    project.description,
                    str(project.hourly_rate) if project.hourly_rate is not None else None,
                    project.currency,
                    project.color,
                    project.archived,
                    to_db_time(project.created_at),
                    to_db_time(project.updated_at),
                ),
            )
            project_id = cursor.lastrowid

        return project.model_copy(update={"id": project_id})

    def get_project_by_id(self, project_id: int) -> Optional[Project]:
        """Get a project by its ID."""
        with self.db_manager.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM projects WHERE id = ?", (project_id,)
            ).fetchone()

        return self._row_to_project(row) if row else None

    def get_projects_by_name(self, name: str) -> List[Project]:
        """Get every project, archived included, whose name matches case-insensitively."""
        wanted = name.strip().casefold()
        return [
            project
            for project in self.list_projects(include_archived=True)
            if project.name.casefold() == wanted
        ]

    def get_projects_by_ids(self, project_ids: List[int]) -> Dict[int, Project]:
        """Get several projects at once, keyed by id."""
        if not project_ids:
            return {}
        placeholders = ", ".join("?" for _ in project_ids)
        with self.db_manager.get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM projects WHERE id IN ({placeholders})",
                tuple(project_ids),
            ).fetchall()

        return {row["id"]: self._row_to_project(row) for row in rows}

    def list_projects(
        self, search: Optional[str] = None, include_archived: bool = False
    ) -> List[Project]:
        """
        List projects in creation order.

        The search is matched in Python rather than with LIKE, which only
        folds ASCII case.
        """
        where = "" if include_archived else "WHERE archived = 0"
        with self.db_manager.get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM projects {where} ORDER BY created_at ASC, id ASC"
            ).fetchall()

        projects = [self._row_to_project(row) for row in rows]
        if search:
            needle = search.casefold()
            projects = [
                p
                for p in projects
                if any(
                    needle in (field or "").casefold()
                    for field in (p.name, p.client, p.description)
                )
            ]
        return projects

    def fetch_project(self, conn: sqlite3.Connection, project_id: int) -> Optional[Project]:
        """Get a project by its ID on an open transaction."""
        row = conn.execute(
            "SELECT * FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        return self._row_to_project(row) if row else None

    def update_project(self, conn: sqlite3.Connection, project: Project) -> bool:
        """
        Write every mutable column of an existing project on an open transaction.

        Returns True if the row was found.
        """
        cursor = conn.execute(
            """
            UPDATE projects
            SET name = ?, client = ?, description = ?, hourly_rate = ?,
                currency = ?, color = ?, archived = ?, updated_at = ?
            WHERE id = ?
        """,
            (
                project.name,
                project.client,
                project.description,
                str(project.hourly_rate) if project.hourly_rate is not None else None,
                project.currency,
                project.color,
                project.archived,
                to_db_time(project.updated_at),
                project.id,
            ),
        )
        return cursor.rowcount > 0

    def _row_to_project(self, row: sqlite3.Row) -> Project:
        """Convert a database row to a Project model."""
        rate = row["hourly_rate"]
        return Project(
            id=row["id"],
            name=row["name"],
            client=row["client"],
            description=row["description"],
            hourly_rate=Decimal(str(rate)) if rate is not None else None,
            currency=row["currency"],
            color=row["color"],
            archived=bool(row["archived"]),
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )


class EntryRepository:
    """Repository for managing time entries in the database."""

    def __init__(self, db_manager: DatabaseManager):
        """Initialize repository with database manager."""
        self.db_manager = db_manager

    def insert_entry(self, conn: sqlite3.Connection, entry: TimeEntry) -> TimeEntry:
        """Insert an entry on an open transaction and return it with its id."""
        cursor = conn.execute(
            """
            INSERT INTO time_entries (project_id, description, start_time, end_time,
                                      duration_minutes, billable, tags, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (
                entry.project_id,
                entry.description,
                to_db_time(entry.start_time),
                to_db_time(entry.end_time),
                entry.duration_minutes,
                entry.billable,
                json.dumps(entry.tags),
                to_db_time(entry.created_at),
                to_db_time(entry.updated_at),
            ),
        )
        return entry.model_copy(update={"id": cursor.lastrowid})

    def create_entry(self, entry: TimeEntry) -> TimeEntry:
        """Insert an entry in its own transaction."""
        with self.db_manager.transaction() as conn:
            return self.insert_entry(conn, entry)

    def get_entry_by_id(self, entry_id: int) -> Optional[TimeEntry]:
        """Get an entry by its ID."""
        with self.db_manager.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM time_entries WHERE id = ?", (entry_id,)
            ).fetchone()

        return self._row_to_entry(row) if row else None

    def fetch_entry(self, conn: sqlite3.Connection, entry_id: int) -> Optional[TimeEntry]:
        """Get an entry by its ID on an open transaction."""
        row = conn.execute(
            "SELECT * FROM time_entries WHERE id = ?", (entry_id,)
        ).fetchone()
        return self._row_to_entry(row) if row else None

    def delete_entry(self, conn: sqlite3.Connection, entry_id: int) -> bool:
        """Delete an entry on an open transaction. Returns True if a row went away."""
        cursor = conn.execute("DELETE FROM time_entries WHERE id = ?", (entry_id,))
        return cursor.rowcount > 0

    def list_entries(
        self,
        project_id: Optional[int] = None,
        bounds: Optional[Tuple[datetime, datetime]] = None,
        billable_only: bool = False,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> List[TimeEntry]:
        """
        Query entries.

        Args:
            project_id: Only entries of this project
            bounds: Half-open [lower, upper) interval on start_time
            billable_only: Only billable entries
            limit: Maximum number of rows
            newest_first: Order by start_time descending instead of ascending

        Returns:
            Matching entries in the requested order
        """
        conditions: List[str] = []
        params: List[Any] = []

        if project_id is not None:
            conditions.append("project_id = ?")
            params.append(project_id)
        if bounds is not None:
            conditions.append("start_time >= ? AND start_time < ?")
            params.extend([to_db_time(bounds[0]), to_db_time(bounds[1])])
        if billable_only:
            conditions.append("billable = 1")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        order = "DESC" if newest_first else "ASC"
        sql = f"SELECT * FROM time_entries {where} ORDER BY start_time {order}, id {order}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        with self.db_manager.get_connection() as conn:
            rows = conn.execute(sql, tuple(params)).fetchall()

        return [self._row_to_entry(row) for row in rows]

    def _row_to_entry(self, row: sqlite3.Row) -> TimeEntry:
        """Convert a database row to a TimeEntry model."""
        return TimeEntry(
            id=row["id"],
            project_id=row["project_id"],
            description=row["description"],
            start_time=from_db_time(row["start_time"]),
            end_time=from_db_time(row["end_time"]),
            billable=bool(row["billable"]),
            tags=json.loads(row["tags"]) if row["tags"] else [],
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )


class TimerRepository:
    """Repository for the single-row active_timer table."""

    def __init__(self, db_manager: DatabaseManager):
        """Initialize repository with database manager."""
        self.db_manager = db_manager

    def get_active_timer(self) -> Optional[ActiveTimer]:
        """Read the running timer, if any."""
        with self.db_manager.get_connection() as conn:
            return self.fetch_timer(conn)

    def fetch_timer(self, conn: sqlite3.Connection) -> Optional[ActiveTimer]:
        """Read the running timer on an open connection."""
        row = conn.execute("SELECT * FROM active_timer WHERE id = 1").fetchone()
        return self._row_to_timer(row) if row else None

    def insert_timer(self, conn: sqlite3.Connection, timer: ActiveTimer) -> None:
        """
        Insert the singleton row.

        Raises sqlite3.IntegrityError if a row already exists; there is no
        replace path.
        """
        conn.execute(
            """
            INSERT INTO active_timer (id, project_id, description, start_time, tags)
            VALUES (1, ?, ?, ?, ?)
        """,
            (
                timer.project_id,
                timer.description,
                to_db_time(timer.start_time),
                json.dumps(timer.tags),
            ),
        )

    def delete_timer(self, conn: sqlite3.Connection) -> bool:
        """Remove the singleton row. Returns True if a row went away."""
        cursor = conn.execute("DELETE FROM active_timer WHERE id = 1")
        return cursor.rowcount > 0

    def _row_to_timer(self, row: sqlite3.Row) -> ActiveTimer:
        """Convert a database row to an ActiveTimer model."""
        return ActiveTimer(
            project_id=row["project_id"],
            description=row["description"],
            start_time=from_db_time(row["start_time"]),
            tags=json.loads(row["tags"]) if row["tags"] else [],
        )
