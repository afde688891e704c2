"""
Timer state machine for Billtrack.

The timer is either IDLE or RUNNING. The running state lives only in the
single-row active_timer table; nothing is cached in memory, so a process
restarted mid-timer sees exactly what the previous one left behind.
"""

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..db.models import (
    ActiveTimer,
    ProjectRef,
    TimeEntry,
    TimerState,
    TimerStatus,
    utc_now,
)
from ..db.repository import EntryRepository, TimerRepository
from .errors import AlreadyRunning, NotRunning, ValidationError
from .projects import ProjectRegistry, validation_message

logger = logging.getLogger(__name__)


class TimerStateMachine:
    """Owns the at-most-one-running-timer invariant."""

    def __init__(
        self,
        registry: ProjectRegistry,
        timer_repo: TimerRepository,
        entry_repo: EntryRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.registry = registry
        self.timer_repo = timer_repo
        self.entry_repo = entry_repo
        self.clock = clock or utc_now

    def state(self) -> TimerState:
        """Current state, read from the store."""
        if self.timer_repo.get_active_timer() is None:
            return TimerState.IDLE
        return TimerState.RUNNING

    def start(
        self,
        project_ref: Union[int, str, ProjectRef],
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> ActiveTimer:
        """
        Start the timer on a project.

        Args:
            project_ref: Project id, name, or tagged reference
            description: Optional description of the work
            tags: Optional tags copied onto the resulting entry

        Returns:
            The persisted running timer

        Raises:
            ProjectNotFound: If the reference matches no project
            AmbiguousReference: If the name matches several projects
            AlreadyRunning: If a timer is already running; it is left untouched
        """
        project = self.registry.resolve(project_ref)
        try:
            timer = ActiveTimer(
                project_id=project.id,
                description=description.strip() if description else None,
                start_time=self.clock(),
                tags=tags or [],
            )
        except PydanticValidationError as e:
            raise ValidationError(validation_message(e)) from e

        with self.timer_repo.db_manager.transaction() as conn:
            existing = self.timer_repo.fetch_timer(conn)
            if existing is not None:
                raise self._already_running(existing)
            try:
                self.timer_repo.insert_timer(conn, timer)
            except sqlite3.IntegrityError:
                # Another writer won the race between the check and the insert.
                raise AlreadyRunning("A timer is already running") from None

        logger.info(
            "Timer started on project #%s '%s' at %s",
            project.id,
            project.name,
            timer.start_time.isoformat(),
        )
        return timer

    def stop(self) -> TimeEntry:
        """
        Stop the running timer and record it as a billable time entry.

        Returns:
            The created time entry

        Raises:
            NotRunning: If no timer is running
        """
        with self.timer_repo.db_manager.transaction() as conn:
            timer = self.timer_repo.fetch_timer(conn)
            if timer is None:
                raise NotRunning("No timer is running")

            end_time = self.clock()
            if end_time <= timer.start_time:
                end_time = timer.start_time + timedelta(microseconds=1)

            entry = TimeEntry(
                project_id=timer.project_id,
                description=timer.description,
                start_time=timer.start_time,
                end_time=end_time,
                billable=True,
                tags=list(timer.tags),
                created_at=end_time,
                updated_at=end_time,
            )
            entry = self.entry_repo.insert_entry(conn, entry)
            self.timer_repo.delete_timer(conn)

        logger.info(
            "Timer stopped on project #%s after %d minutes (entry #%s)",
            entry.project_id,
            entry.duration_minutes,
            entry.id,
        )
        return entry

    def discard(self) -> ActiveTimer:
        """
        Abandon the running timer without recording an entry.

        Raises:
            NotRunning: If no timer is running
        """
        with self.timer_repo.db_manager.transaction() as conn:
            timer = self.timer_repo.fetch_timer(conn)
            if timer is None:
                raise NotRunning("No timer is running")
            self.timer_repo.delete_timer(conn)

        logger.info("Timer on project #%s discarded", timer.project_id)
        return timer

    def status(self) -> TimerStatus:
        """Report the timer with elapsed time recomputed from the stored start."""
        timer = self.timer_repo.get_active_timer()
        if timer is None:
            return TimerStatus(running=False)

        project = self.registry.project_repo.get_project_by_id(timer.project_id)
        return TimerStatus(
            running=True,
            project=project,
            description=timer.description,
            tags=timer.tags,
            start_time=timer.start_time,
            elapsed=timer.elapsed(self.clock()),
        )

    def _already_running(self, existing: ActiveTimer) -> AlreadyRunning:
        project = self.registry.project_repo.get_project_by_id(existing.project_id)
        name = project.name if project else f"#{existing.project_id}"
        return AlreadyRunning(
            f"Timer already running on project '{name}' since "
            f"{existing.start_time.isoformat()}. Stop it first."
        )
