"""
Core time tracking functionality for Billtrack.

This module contains the TimeTracker facade that wires the project
registry, timer, ledger and aggregator to one database and exposes the
operations a front end calls.
"""

import logging
from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterator, List, Optional, Union

from ..db.models import (
    DEFAULT_CURRENCY,
    ActiveTimer,
    Project,
    ProjectRef,
    Report,
    TimeEntry,
    TimerStatus,
    Timesheet,
    WeekBucket,
    utc_now,
)
from ..db.repository import EntryRepository, ProjectRepository, TimerRepository
from ..db.schema import DatabaseManager
from .aggregator import ReportAggregator
from .ledger import TimeEntryLedger
from .projects import ProjectRegistry
from .ranges import RangeLike
from .timer import TimerStateMachine

if TYPE_CHECKING:
    from ..utils.config import ConfigManager

logger = logging.getLogger(__name__)

DB_FILENAME = "billtrack.db"

ProjectRefLike = Union[int, str, ProjectRef]


class TimeTracker:
    """Main time tracking service that coordinates all components."""

    def __init__(
        self,
        data_dir: Path,
        tz: Optional[tzinfo] = None,
        default_currency: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize TimeTracker with the given data directory.

        Args:
            data_dir: Directory where the database is stored
            tz: Installation timezone used for day attribution, UTC if omitted
            default_currency: Currency for projects created without one
            clock: Callable returning the current aware datetime
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.tz = tz or timezone.utc
        self.clock = clock or utc_now

        self.db_manager = DatabaseManager(self.data_dir / DB_FILENAME)
        self.db_manager.initialize_database()

        self.project_repo = ProjectRepository(self.db_manager)
        self.entry_repo = EntryRepository(self.db_manager)
        self.timer_repo = TimerRepository(self.db_manager)

        self.projects = ProjectRegistry(
            self.project_repo,
            default_currency=default_currency or DEFAULT_CURRENCY,
            clock=self.clock,
        )
        self.timer = TimerStateMachine(
            self.projects, self.timer_repo, self.entry_repo, clock=self.clock
        )
        self.ledger = TimeEntryLedger(
            self.projects, self.entry_repo, self.tz, clock=self.clock
        )
        self.aggregator = ReportAggregator(
            self.projects, self.entry_repo, self.tz, clock=self.clock
        )
        logger.debug("TimeTracker ready at %s (tz=%s)", self.data_dir, self.tz)

    @classmethod
    def from_config(cls, config: "ConfigManager", **kwargs: Any) -> "TimeTracker":
        """Build a tracker from the user configuration."""
        return cls(
            config.get_data_dir(),
            tz=config.get_timezone(),
            default_currency=config.get_default_currency(),
            **kwargs,
        )

    # Project registry

    def create_project(
        self,
        name: str,
        client: Optional[str] = None,
        description: Optional[str] = None,
        hourly_rate: Optional[Union[Decimal, float, int, str]] = None,
        currency: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Project:
        """Create a new project."""
        return self.projects.create(
            name,
            client=client,
            description=description,
            hourly_rate=hourly_rate,
            currency=currency,
            color=color,
        )

    def list_projects(
        self, search: Optional[str] = None, include_archived: bool = False
    ) -> List[Project]:
        """List projects ordered by creation time."""
        return self.projects.list(search=search, include_archived=include_archived)

    def get_project(self, project_ref: ProjectRefLike) -> Project:
        """Resolve a project by id or name."""
        return self.projects.resolve(project_ref)

    def update_project(self, project_id: int, **fields: Any) -> Project:
        """Partially update a project, including archiving it."""
        return self.projects.update(project_id, **fields)

    # Timer

    def start_timer(
        self,
        project_ref: ProjectRefLike,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> ActiveTimer:
        """Start the timer on a project."""
        return self.timer.start(project_ref, description=description, tags=tags)

    def stop_timer(self) -> TimeEntry:
        """Stop the running timer and return the recorded entry."""
        return self.timer.stop()

    def discard_timer(self) -> ActiveTimer:
        """Drop the running timer without recording anything."""
        return self.timer.discard()

    def get_timer_status(self) -> TimerStatus:
        """Report whether a timer is running and for how long."""
        return self.timer.status()

    # Ledger

    def add_entry(
        self,
        project_ref: ProjectRefLike,
        start_time: datetime,
        end_time: datetime,
        description: Optional[str] = None,
        billable: bool = True,
        tags: Optional[List[str]] = None,
    ) -> TimeEntry:
        """Insert a manual time entry."""
        return self.ledger.add(
            project_ref,
            start_time,
            end_time,
            description=description,
            billable=billable,
            tags=tags,
        )

    def get_entry(self, entry_id: int) -> TimeEntry:
        """Get a time entry by id."""
        return self.ledger.get(entry_id)

    def list_entries(
        self,
        project_ref: Optional[ProjectRefLike] = None,
        date_range: Optional[RangeLike] = None,
        billable_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[TimeEntry]:
        """List entries, most recent first."""
        return self.ledger.list(
            project_ref=project_ref,
            date_range=date_range,
            billable_only=billable_only,
            limit=limit,
        )

    def delete_entry(self, entry_id: int) -> TimeEntry:
        """Delete a time entry and return it."""
        return self.ledger.delete(entry_id)

    # Aggregation

    def generate_timesheet(
        self,
        date_range: RangeLike,
        project_filter: Optional[ProjectRefLike] = None,
        billable_only: bool = False,
    ) -> Timesheet:
        """Build a day-grouped timesheet for a range."""
        return self.aggregator.timesheet(
            date_range, project_filter=project_filter, billable_only=billable_only
        )

    def generate_report(self, date_range: RangeLike) -> Report:
        """Build the per-project and weekly report for a range."""
        return self.aggregator.report(date_range)

    def iter_weekly_trend(self, date_range: RangeLike) -> Iterator[WeekBucket]:
        """Lazily iterate ISO-week buckets for a range."""
        return self.aggregator.iter_weekly_trend(date_range)

    def get_database_stats(self) -> dict:
        """Get database statistics."""
        return self.db_manager.get_database_stats()
