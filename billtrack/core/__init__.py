"""Core time tracking logic for Billtrack."""

from .errors import (
    AlreadyRunning,
    AmbiguousReference,
    EntryNotFound,
    InvalidRange,
    NotFound,
    NotRunning,
    ProjectNotFound,
    StorageError,
    TimeTrackingError,
    ValidationError,
)

__all__ = [
    "TimeTrackingError",
    "ValidationError",
    "InvalidRange",
    "NotFound",
    "ProjectNotFound",
    "EntryNotFound",
    "AlreadyRunning",
    "NotRunning",
    "AmbiguousReference",
    "StorageError",
]
