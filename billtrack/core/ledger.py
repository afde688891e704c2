"""
Time entry ledger for Billtrack.

Entries are immutable once written: they can be added, listed and deleted,
never edited in place.
"""

import logging
from datetime import date, datetime, tzinfo
from typing import Callable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..db.models import ProjectRef, TimeEntry, utc_now
from ..db.repository import EntryRepository
from .errors import EntryNotFound, ValidationError
from .projects import ProjectRegistry, validation_message
from .ranges import RangeLike, resolve_range

logger = logging.getLogger(__name__)


class TimeEntryLedger:
    """Stores closed work intervals."""

    def __init__(
        self,
        registry: ProjectRegistry,
        entry_repo: EntryRepository,
        tz: tzinfo,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.registry = registry
        self.entry_repo = entry_repo
        self.tz = tz
        self.clock = clock or utc_now

    def today(self) -> date:
        """Current calendar day in the installation timezone."""
        return self.clock().astimezone(self.tz).date()

    def localize(self, value: datetime) -> datetime:
        """Attach the installation timezone to naive datetimes."""
        if value.tzinfo is None or value.utcoffset() is None:
            return value.replace(tzinfo=self.tz)
        return value

    def add(
        self,
        project_ref: Union[int, str, ProjectRef],
        start_time: datetime,
        end_time: datetime,
        description: Optional[str] = None,
        billable: bool = True,
        tags: Optional[List[str]] = None,
    ) -> TimeEntry:
        """
        Insert a manual time entry.

        Naive datetimes are taken to be in the installation timezone.

        Args:
            project_ref: Project id, name, or tagged reference
            start_time: When the work started
            end_time: When the work ended, strictly after start_time
            description: Optional description of the work
            billable: Whether the entry counts toward earnings
            tags: Optional tags

        Returns:
            The stored entry

        Raises:
            ProjectNotFound: If the reference matches no project
            AmbiguousReference: If the name matches several projects
            ValidationError: If end_time is not after start_time
        """
        start_time = self.localize(start_time)
        end_time = self.localize(end_time)
        if end_time <= start_time:
            raise ValidationError("End time must be after start time")

        project = self.registry.resolve(project_ref)
        now = self.clock()
        try:
            entry = TimeEntry(
                project_id=project.id,
                description=description.strip() if description else None,
                start_time=start_time,
                end_time=end_time,
                billable=billable,
                tags=tags or [],
                created_at=now,
                updated_at=now,
            )
        except PydanticValidationError as e:
            raise ValidationError(validation_message(e)) from e

        created = self.entry_repo.create_entry(entry)
        logger.info(
            "Added entry #%s on project #%s (%d minutes)",
            created.id,
            project.id,
            created.duration_minutes,
        )
        return created

    def get(self, entry_id: int) -> TimeEntry:
        """Get an entry by id or raise EntryNotFound."""
        entry = self.entry_repo.get_entry_by_id(entry_id)
        if entry is None:
            raise EntryNotFound(f"Time entry with ID {entry_id} not found")
        return entry

    def list(
        self,
        project_ref: Optional[Union[int, str, ProjectRef]] = None,
        date_range: Optional[RangeLike] = None,
        billable_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[TimeEntry]:
        """
        List entries, most recent first.

        Args:
            project_ref: Only entries of this project
            date_range: Only entries starting inside this range
            billable_only: Only billable entries
            limit: Maximum number of entries

        Returns:
            Matching entries ordered by start time, newest first
        """
        if limit is not None and limit < 1:
            raise ValidationError("Limit must be a positive number")

        project_id = None
        if project_ref is not None:
            project_id = self.registry.resolve(project_ref).id

        bounds = None
        if date_range is not None:
            bounds = resolve_range(date_range, self.today()).bounds(self.tz)

        logger.debug(
            "Listing entries project=%s bounds=%s billable_only=%s",
            project_id,
            bounds,
            billable_only,
        )
        return self.entry_repo.list_entries(
            project_id=project_id,
            bounds=bounds,
            billable_only=billable_only,
            limit=limit,
        )

    def delete(self, entry_id: int) -> TimeEntry:
        """
        Delete an entry.

        Returns:
            The entry as it was before deletion

        Raises:
            EntryNotFound: If the id does not exist, including when it was
                already deleted
        """
        with self.entry_repo.db_manager.transaction() as conn:
            entry = self.entry_repo.fetch_entry(conn, entry_id)
            if entry is None:
                raise EntryNotFound(f"Time entry with ID {entry_id} not found")
            self.entry_repo.delete_entry(conn, entry_id)

        logger.info("Deleted entry #%s", entry_id)
        return entry
