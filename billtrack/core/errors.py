"""
Exception hierarchy for Billtrack.

Every failure raised by the core is a TimeTrackingError subclass so callers
can catch the whole family in one place.
"""

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from ..db.models import Project


class TimeTrackingError(Exception):
    """Base exception for time tracking operations."""

    pass


class ValidationError(TimeTrackingError):
    """Raised when input is malformed or violates a record invariant."""

    pass


class InvalidRange(ValidationError):
    """Raised when a date range ends before it starts or cannot be parsed."""

    pass


class NotFound(TimeTrackingError):
    """Raised when a referenced project or entry does not exist."""

    pass


class ProjectNotFound(NotFound):
    """Raised when a project reference resolves to nothing."""

    pass


class EntryNotFound(NotFound):
    """Raised when a time entry id does not exist."""

    pass


class AlreadyRunning(TimeTrackingError):
    """Raised when starting a timer while another one is running."""

    pass


class NotRunning(TimeTrackingError):
    """Raised when stopping or discarding a timer while none is running."""

    pass


class AmbiguousReference(TimeTrackingError):
    """Raised when a project name matches more than one project."""

    def __init__(self, reference: str, candidates: Optional[List["Project"]] = None):
        self.reference = reference
        self.candidates = list(candidates or [])
        names = ", ".join(f"#{p.id} {p.name}" for p in self.candidates)
        super().__init__(f"Project reference '{reference}' is ambiguous: {names}")


class StorageError(TimeTrackingError):
    """Raised when the persistent store fails. Never recovered internally."""

    pass
